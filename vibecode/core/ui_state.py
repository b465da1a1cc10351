"""Pure projection of orchestrator state onto what the UI shows."""

from typing import Optional

from ..models.enums import EnhancementStatus
from ..models.schemas import OrchestratorState, UIState


class UIStateProjector:
    """Derives button, spinner and status line from state. Holds no state."""
    
    SIGN_IN_HINT = "Sign in to get started."
    UPLOAD_HINT = "Upload a photo to enhance."
    PROMPT_HINT = "Write a vibe prompt describing the enhancement."
    READY_TEXT = "Ready to enhance."
    PERSISTING_TEXT = "Saving your vibe..."
    INVOKING_TEXT = "Enhancing photo..."
    RETRY_TEXT = "Enhancement attempt failed, retrying..."
    SUCCEEDED_TEXT = "Photo enhanced successfully!"
    FAILED_TEXT = "Failed to enhance photo. Please try again."
    
    @classmethod
    def project(
        cls,
        status: EnhancementStatus,
        has_identity: bool,
        has_image: bool,
        has_prompt: bool,
        message: Optional[str] = None,
        persistence_warning: Optional[str] = None,
        attempt: int = 0,
        max_attempts: int = 0,
    ) -> UIState:
        """
        Project one state.
        
        Args:
            status: Orchestrator status
            has_identity: A user is signed in
            has_image: A photo is uploaded
            has_prompt: The prompt has non-blank text
            message: Latest status message, shown instead of the default
                text for idle and terminal states
            persistence_warning: Appended while the run it belongs to is shown
            attempt: Current attempt number (1-based, 0 if none)
            max_attempts: Attempt ceiling
        """
        busy = status.is_active
        
        if status == EnhancementStatus.PERSISTING:
            text = cls.PERSISTING_TEXT
        elif status == EnhancementStatus.INVOKING:
            if attempt > 1 and max_attempts:
                text = f"Enhancing photo (attempt {attempt} of {max_attempts})..."
            else:
                text = cls.INVOKING_TEXT
        elif status == EnhancementStatus.RETRY_PENDING:
            text = cls.RETRY_TEXT
        elif message:
            text = message
        elif status == EnhancementStatus.SUCCEEDED:
            text = cls.SUCCEEDED_TEXT
        elif status == EnhancementStatus.FAILED:
            text = cls.FAILED_TEXT
        elif not has_identity:
            text = cls.SIGN_IN_HINT
        elif not has_image:
            text = cls.UPLOAD_HINT
        elif not has_prompt:
            text = cls.PROMPT_HINT
        else:
            text = cls.READY_TEXT
        
        if persistence_warning and status != EnhancementStatus.IDLE:
            text = f"{text} {persistence_warning}"
        
        return UIState(
            can_submit=has_identity and has_image and has_prompt and not busy,
            status_text=text,
            show_spinner=busy,
        )
    
    @classmethod
    def from_state(
        cls,
        state: OrchestratorState,
        has_identity: bool,
        has_image: bool,
        has_prompt: bool,
        message: Optional[str] = None,
    ) -> UIState:
        """Project a published snapshot; ``message`` overrides the state's own."""
        return cls.project(
            state.status,
            has_identity=has_identity,
            has_image=has_image,
            has_prompt=has_prompt,
            message=message or state.message,
            persistence_warning=state.persistence_warning,
            attempt=state.attempt,
            max_attempts=state.max_attempts,
        )
