"""Conversion between raw image bytes, ImageAssets and data URIs."""

import base64

from ..models.schemas import ImageAsset

DATA_URI_PREFIX = "data:"
BASE64_MARKER = ";base64,"


class ImageCodec:
    """
    Encodes uploads for inline transport.
    
    Encoding never inspects the bytes: any blob is accepted under the mime
    type the caller declares.
    """
    
    @staticmethod
    def encode(file_bytes: bytes, declared_mime_type: str) -> ImageAsset:
        return ImageAsset(
            mime_type=declared_mime_type,
            inline_data=base64.b64encode(file_bytes).decode("ascii"),
        )
    
    @staticmethod
    def decode(asset: ImageAsset) -> bytes:
        return base64.b64decode(asset.inline_data)
    
    @staticmethod
    def to_data_uri(asset: ImageAsset) -> str:
        return f"{DATA_URI_PREFIX}{asset.mime_type}{BASE64_MARKER}{asset.inline_data}"
    
    @staticmethod
    def strip_envelope(data_uri: str) -> str:
        """
        Return the base64 payload of a data URI.
        
        Assumes the URI came from ``to_data_uri``; no validation is done.
        """
        return data_uri.split(",", 1)[1]
    
    @classmethod
    def from_data_uri(cls, data_uri: str) -> ImageAsset:
        """Split a data URI produced by ``to_data_uri`` back into an ImageAsset."""
        header = data_uri.split(",", 1)[0]
        mime_type = header[len(DATA_URI_PREFIX):].split(";", 1)[0]
        return ImageAsset(mime_type=mime_type, inline_data=cls.strip_envelope(data_uri))
