"""Pydantic schemas for data validation."""

from typing import Optional
from datetime import datetime, timezone
from pydantic import BaseModel, Field

from .enums import EnhancementStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Identity(BaseModel):
    """Signed-in user handle, anonymous or token-backed."""
    id: str
    anonymous: bool = False
    
    class Config:
        frozen = True


class VibePrompt(BaseModel):
    """The prompt persisted for one user."""
    owner_id: str
    text: str = ""
    last_updated: Optional[datetime] = None


class ImageAsset(BaseModel):
    """Inline image: mime type plus base64 payload."""
    mime_type: str
    inline_data: str
    
    class Config:
        frozen = True
    
    def __repr__(self) -> str:
        return f"ImageAsset(mime_type={self.mime_type!r}, inline_data=<{len(self.inline_data)} chars>)"


class EnhancementRequest(BaseModel):
    """One orchestration run, alive from submission to a terminal state."""
    prompt: str
    source_image: ImageAsset
    owner_id: str
    attempt: int = 0
    result: Optional[ImageAsset] = None
    status: EnhancementStatus = EnhancementStatus.IDLE
    submitted_at: datetime = Field(default_factory=utcnow)


class OrchestratorState(BaseModel):
    """Read-only snapshot published on every orchestrator transition."""
    status: EnhancementStatus = EnhancementStatus.IDLE
    attempt: int = 0
    max_attempts: int = 4
    message: Optional[str] = None
    persistence_warning: Optional[str] = None
    retry_delay_seconds: Optional[float] = None
    result: Optional[ImageAsset] = None
    
    class Config:
        frozen = True


class UIState(BaseModel):
    """What the rendering layer needs to draw the controls."""
    can_submit: bool
    status_text: str
    show_spinner: bool
    
    class Config:
        frozen = True
