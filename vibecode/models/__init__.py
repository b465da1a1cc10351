"""Data models and schemas for the VibeCode enhancer."""

from .schemas import (
    Identity,
    VibePrompt,
    ImageAsset,
    EnhancementRequest,
    OrchestratorState,
    UIState,
)
from .enums import EnhancementStatus

__all__ = [
    "Identity",
    "VibePrompt",
    "ImageAsset",
    "EnhancementRequest",
    "OrchestratorState",
    "UIState",
    "EnhancementStatus",
]
