"""Core business logic components."""

from .identity_channel import IdentityChannel
from .prompt_store import PromptStore
from .image_codec import ImageCodec
from .orchestrator import EnhancementOrchestrator
from .ui_state import UIStateProjector
from .session import VibeSession

__all__ = [
    "IdentityChannel",
    "PromptStore",
    "ImageCodec",
    "EnhancementOrchestrator",
    "UIStateProjector",
    "VibeSession",
]
