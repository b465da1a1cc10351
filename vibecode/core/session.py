"""One user session: identity, prompt, uploaded photo and enhancement."""

import asyncio
from typing import Optional

from .identity_channel import IdentityChannel
from .image_codec import ImageCodec
from .orchestrator import EnhancementOrchestrator
from .prompt_store import PromptStore
from .ui_state import UIStateProjector
from ..models.schemas import (
    EnhancementRequest,
    Identity,
    ImageAsset,
    OrchestratorState,
    UIState,
)
from ..utils.errors import AuthError, PersistenceError
from ..utils.images import resolve_mime_type
from ..utils.logger import get_logger

logger = get_logger(__name__)


class VibeSession:
    """
    Wires the components together.
    
    Identity changes restart the prompt subscription for the new owner and
    feed its value into the prompt field; uploads and prompt edits are held
    here until a submission hands them to the orchestrator. The status line
    shows whichever happened last: a session notice (sign-in, upload, ...)
    or an orchestrator transition.
    """
    
    SIGN_IN_ERROR = "Error signing in. Check the console for details."
    SIGN_OUT_ERROR = "Error signing out. Check the console for details."
    SIGNED_OUT = "Successfully signed out."
    IMAGE_UPLOADED = "Image uploaded. Now add a prompt and enhance!"
    PROMPT_LOAD_ERROR = "Could not load your saved prompt."
    
    def __init__(
        self,
        identity_channel: IdentityChannel,
        prompt_store: PromptStore,
        orchestrator: EnhancementOrchestrator,
        codec: Optional[ImageCodec] = None,
    ):
        self.identity_channel = identity_channel
        self.prompt_store = prompt_store
        self.orchestrator = orchestrator
        self.codec = codec or ImageCodec()
        
        self.prompt_text = ""
        self.image: Optional[ImageAsset] = None
        self.image_data_uri: Optional[str] = None
        self._notice: Optional[str] = None
        self._prompt_task: Optional[asyncio.Task] = None
        
        identity_channel.on_identity_changed(self._on_identity_changed)
        orchestrator.subscribe(self._on_state)
    
    @property
    def identity(self) -> Optional[Identity]:
        return self.identity_channel.current
    
    @property
    def result(self) -> Optional[ImageAsset]:
        return self.orchestrator.result
    
    # ==================== IDENTITY ====================
    
    async def sign_in(self, token: Optional[str] = None) -> Identity:
        """
        Raises:
            AuthError: After recording the sign-in error notice
        """
        try:
            return await self.identity_channel.sign_in(token)
        except AuthError:
            self._notice = self.SIGN_IN_ERROR
            raise
    
    async def sign_out(self):
        """
        Raises:
            AuthError: After recording the sign-out error notice
        """
        try:
            await self.identity_channel.sign_out()
        except AuthError:
            logger.error("Sign out error", exc_info=True)
            self._notice = self.SIGN_OUT_ERROR
            raise
        self._notice = self.SIGNED_OUT
    
    def _on_identity_changed(self, identity: Optional[Identity]):
        self._stop_prompt_subscription()
        self.prompt_text = ""
        
        if identity is None:
            self.image = None
            self.image_data_uri = None
            return
        
        self._prompt_task = asyncio.get_running_loop().create_task(
            self._follow_prompt(identity.id)
        )
    
    async def _follow_prompt(self, owner_id: str):
        async for prompt in self.prompt_store.load(owner_id, on_error=self._on_prompt_error):
            self.prompt_text = prompt.text if prompt else ""
    
    def _on_prompt_error(self, error: PersistenceError):
        self._notice = self.PROMPT_LOAD_ERROR
    
    def _stop_prompt_subscription(self):
        if self._prompt_task is not None:
            self._prompt_task.cancel()
            self._prompt_task = None
    
    # ==================== INPUT ====================
    
    def set_prompt(self, text: str):
        """Local edit; saved to the store when an enhancement is submitted."""
        self.prompt_text = text
    
    def upload_image(
        self,
        file_bytes: bytes,
        declared_mime_type: Optional[str] = None,
        filename: Optional[str] = None,
    ) -> ImageAsset:
        """
        Replace the current photo.
        
        The file is wrapped as a data URI (kept for previews) and the asset
        is split back out of it.
        
        Raises:
            ImageProcessingError: If the file is not an image
        """
        mime_type = resolve_mime_type(file_bytes, declared_mime_type, filename)
        self.image_data_uri = self.codec.to_data_uri(self.codec.encode(file_bytes, mime_type))
        self.image = self.codec.from_data_uri(self.image_data_uri)
        self._notice = self.IMAGE_UPLOADED
        
        logger.info(
            "Image uploaded",
            extra={"mime_type": mime_type, "size_bytes": len(file_bytes)}
        )
        return self.image
    
    # ==================== ENHANCEMENT ====================
    
    def start_enhancement(self) -> EnhancementRequest:
        """
        Begin a submission with the current prompt and photo.
        
        Raises:
            SubmissionRejectedError: If a request is already active
            ValidationError: If identity, image or prompt is missing
        """
        return self.orchestrator.start(self.prompt_text, self.image)
    
    async def enhance(self) -> OrchestratorState:
        return await self.orchestrator.submit(self.prompt_text, self.image)
    
    def _on_state(self, state: OrchestratorState):
        self._notice = None
    
    def ui_state(self) -> UIState:
        return UIStateProjector.from_state(
            self.orchestrator.state(),
            has_identity=self.identity is not None,
            has_image=self.image is not None,
            has_prompt=bool(self.prompt_text.strip()),
            message=self._notice,
        )
    
    async def close(self):
        task = self._prompt_task
        self._stop_prompt_subscription()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass
