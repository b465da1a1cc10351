"""Image file utilities for the upload boundary."""

import mimetypes
from io import BytesIO
from typing import Optional

from PIL import Image, UnidentifiedImageError

from .logger import get_logger
from .errors import ImageProcessingError

logger = get_logger(__name__)


def sniff_mime_type(image_bytes: bytes) -> Optional[str]:
    """
    Detect the mime type of image bytes from their content.
    
    Args:
        image_bytes: Raw file bytes
        
    Returns:
        Mime type (e.g. 'image/png') or None if not a recognised image
    """
    try:
        with Image.open(BytesIO(image_bytes)) as image:
            image_format = image.format
    except (UnidentifiedImageError, OSError):
        return None
    
    if image_format is None:
        return None
    return Image.MIME.get(image_format.upper())


def resolve_mime_type(
    image_bytes: bytes,
    declared_mime_type: Optional[str] = None,
    filename: Optional[str] = None,
) -> str:
    """
    Decide the mime type of an uploaded file.
    
    The declared type wins when it is an image type; otherwise the filename
    extension is tried, then the content itself.
    
    Raises:
        ImageProcessingError: If the file is not recognisably an image
    """
    if declared_mime_type and declared_mime_type.startswith("image/"):
        return declared_mime_type
    
    if filename:
        guessed, _ = mimetypes.guess_type(filename)
        if guessed and guessed.startswith("image/"):
            return guessed
    
    sniffed = sniff_mime_type(image_bytes)
    if sniffed:
        logger.debug(
            "Mime type detected from content",
            extra={"declared_mime_type": declared_mime_type, "mime_type": sniffed}
        )
        return sniffed
    
    raise ImageProcessingError(
        f"Uploaded file is not an image (declared type: {declared_mime_type or 'none'})"
    )

