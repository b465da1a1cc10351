"""Enumerations for the VibeCode enhancer."""

from enum import Enum


class EnhancementStatus(str, Enum):
    """Status of the enhancement orchestrator."""
    IDLE = "idle"
    PERSISTING = "persisting"
    INVOKING = "invoking"
    RETRY_PENDING = "retry_pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    
    @property
    def is_active(self) -> bool:
        """A request is in flight; new submissions are rejected."""
        return self in ACTIVE_STATUSES


ACTIVE_STATUSES = frozenset({
    EnhancementStatus.PERSISTING,
    EnhancementStatus.INVOKING,
    EnhancementStatus.RETRY_PENDING,
})
