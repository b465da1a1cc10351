"""Enhancement orchestrator: prompt persistence plus resilient generation."""

import asyncio
from typing import Awaitable, Callable, List, Optional

from .identity_channel import IdentityChannel
from .prompt_store import PromptStore
from ..models.enums import EnhancementStatus
from ..models.schemas import (
    EnhancementRequest,
    Identity,
    ImageAsset,
    OrchestratorState,
)
from ..providers.gemini import GeminiImageClient
from ..utils.errors import (
    PersistenceError,
    RemoteInvocationError,
    SubmissionRejectedError,
    ValidationError,
)
from ..utils.logger import get_logger
from ..utils.retry import RetryPolicy

logger = get_logger(__name__)

StateListener = Callable[[OrchestratorState], None]
Sleep = Callable[[float], Awaitable[None]]


class EnhancementOrchestrator:
    """
    State machine for one identity's enhancement requests.

    Transitions::

        Idle -> Persisting -> Invoking -> Succeeded
                                 |  ^
                                 v  |
                            RetryPending -> ... -> Failed

    A new submission may start from Idle, Succeeded or Failed only; while a
    request is Persisting, Invoking or RetryPending any other submission is
    rejected without touching the active one. Every transition is published
    to subscribers as an OrchestratorState snapshot.

    Errors never leave ``submit``: they end up as the state's status and
    message. A result that arrives after the identity changed is discarded.
    """

    MISSING_INPUT_MESSAGE = "Please sign in, upload a photo, and write a prompt."
    SUCCESS_MESSAGE = "Photo enhanced successfully!"
    FAILURE_MESSAGE = "Failed to enhance photo. Please try again."
    UNEXPECTED_ERROR_MESSAGE = "An error occurred during enhancement. Please try again."
    CANCELLED_MESSAGE = "Enhancement was cancelled."
    PERSISTENCE_WARNING = "Your prompt could not be saved."

    def __init__(
        self,
        identity_channel: IdentityChannel,
        prompt_store: PromptStore,
        client: GeminiImageClient,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Initialize orchestrator.

        Args:
            identity_channel: Source of the current identity
            prompt_store: Where the prompt is saved before generation
            client: Generation service client (one call = one attempt)
            retry_policy: Retry ceiling and backoff table
            sleep: Awaitable used for retry waits
        """
        self.identity_channel = identity_channel
        self.prompt_store = prompt_store
        self.client = client
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep

        self._status = EnhancementStatus.IDLE
        self._request: Optional[EnhancementRequest] = None
        self._result: Optional[ImageAsset] = None
        self._message: Optional[str] = None
        self._persistence_warning: Optional[str] = None
        self._retry_delay: Optional[float] = None
        self._listeners: List[StateListener] = []

        identity_channel.on_identity_changed(self._on_identity_changed)

    # ==================== STATE ====================

    @property
    def status(self) -> EnhancementStatus:
        return self._status

    @property
    def request(self) -> Optional[EnhancementRequest]:
        """The active or most recent request of the current identity."""
        return self._request

    @property
    def result(self) -> Optional[ImageAsset]:
        """Latest generated image; kept until the next submission starts."""
        return self._result

    def state(self) -> OrchestratorState:
        return OrchestratorState(
            status=self._status,
            attempt=self._request.attempt if self._request else 0,
            max_attempts=self.retry_policy.max_attempts,
            message=self._message,
            persistence_warning=self._persistence_warning,
            retry_delay_seconds=self._retry_delay,
            result=self._result,
        )

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """
        Receive a snapshot after every transition.

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self):
        snapshot = self.state()
        for listener in list(self._listeners):
            listener(snapshot)

    def _transition(
        self,
        status: EnhancementStatus,
        request: Optional[EnhancementRequest] = None,
        retry_delay: Optional[float] = None,
    ):
        self._status = status
        if request is not None:
            request.status = status
        self._retry_delay = retry_delay
        self._emit()

    # ==================== SUBMISSION ====================

    def start(self, prompt: str, image: Optional[ImageAsset]) -> EnhancementRequest:
        """
        Validate and begin a submission without performing any I/O.

        On success the orchestrator is Persisting and the returned request
        must be driven with ``run``.

        Raises:
            SubmissionRejectedError: If a request is already active
            ValidationError: If identity, image or prompt is missing
        """
        if self._status.is_active:
            logger.warning(
                "Submission rejected, request already in flight",
                extra={"status": self._status.value}
            )
            raise SubmissionRejectedError(
                f"An enhancement is already in progress ({self._status.value})"
            )

        identity = self.identity_channel.current
        if identity is None or image is None or not (prompt or "").strip():
            logger.info(
                "Submission missing input",
                extra={
                    "has_identity": identity is not None,
                    "has_image": image is not None,
                    "has_prompt": bool((prompt or "").strip()),
                }
            )
            self._message = self.MISSING_INPUT_MESSAGE
            self._emit()
            raise ValidationError(self.MISSING_INPUT_MESSAGE)

        request = EnhancementRequest(
            prompt=prompt,
            source_image=image,
            owner_id=identity.id,
        )
        self._request = request
        self._result = None
        self._message = None
        self._persistence_warning = None

        logger.info(
            "Enhancement submitted",
            extra={"user_id": identity.id, "mime_type": image.mime_type}
        )

        self._transition(EnhancementStatus.PERSISTING, request)
        return request

    async def submit(self, prompt: str, image: Optional[ImageAsset]) -> OrchestratorState:
        """
        Start and run a submission to its end.

        Returns:
            State after the run (or unchanged state if rejected/invalid)
        """
        try:
            request = self.start(prompt, image)
        except (SubmissionRejectedError, ValidationError):
            return self.state()
        return await self.run(request)

    # ==================== RUN ====================

    def _is_stale(self, request: EnhancementRequest) -> bool:
        identity: Optional[Identity] = self.identity_channel.current
        return (
            request is not self._request
            or identity is None
            or identity.id != request.owner_id
        )

    def _discard(self, request: EnhancementRequest, outcome: str) -> OrchestratorState:
        logger.info(
            "Discarding result for stale identity",
            extra={"user_id": request.owner_id, "outcome": outcome, "attempt": request.attempt}
        )
        return self.state()

    async def run(self, request: EnhancementRequest) -> OrchestratorState:
        """
        Drive a started request: save the prompt once, then invoke with retries.

        Args:
            request: Request returned by ``start``

        Returns:
            Final state snapshot
        """
        try:
            await self._persist_prompt(request)
            if self._is_stale(request):
                return self._discard(request, "persisted")

            return await self._invoke_with_retry(request)

        except asyncio.CancelledError:
            if not self._is_stale(request):
                self._message = self.CANCELLED_MESSAGE
                self._transition(EnhancementStatus.FAILED, request)
            raise
        except Exception as e:
            logger.error(
                f"Error in enhancement logic: {e}",
                extra={"user_id": request.owner_id, "attempt": request.attempt},
                exc_info=True
            )
            if self._is_stale(request):
                return self._discard(request, "error")
            self._message = self.UNEXPECTED_ERROR_MESSAGE
            self._transition(EnhancementStatus.FAILED, request)
            return self.state()

    async def _persist_prompt(self, request: EnhancementRequest):
        """Save the prompt; a failure is recorded but does not stop the run."""
        try:
            await self.prompt_store.persist(request.owner_id, request.prompt)
        except PersistenceError as e:
            logger.warning(
                "Prompt save failed, continuing with enhancement",
                extra={"user_id": request.owner_id, "error": str(e)}
            )
            if not self._is_stale(request):
                self._persistence_warning = self.PERSISTENCE_WARNING
                self._emit()

    async def _invoke_with_retry(self, request: EnhancementRequest) -> OrchestratorState:
        policy = self.retry_policy

        for attempt in range(1, policy.max_attempts + 1):
            request.attempt = attempt
            self._transition(EnhancementStatus.INVOKING, request)

            logger.info(
                f"Generation attempt {attempt}/{policy.max_attempts}",
                extra={"user_id": request.owner_id, "attempt": attempt}
            )

            try:
                result = await self.client.generate_image(request.prompt, request.source_image)
            except RemoteInvocationError as e:
                logger.warning(
                    f"API call error: {e}",
                    extra={
                        "user_id": request.owner_id,
                        "attempt": attempt,
                        "status_code": e.status_code,
                    }
                )
                if self._is_stale(request):
                    return self._discard(request, "failure")

                if not policy.should_retry(attempt):
                    break

                delay = policy.delay_for(attempt)
                self._transition(EnhancementStatus.RETRY_PENDING, request, retry_delay=delay)

                logger.info(
                    f"Retrying in {delay}s",
                    extra={"user_id": request.owner_id, "retry": attempt, "delay_seconds": delay}
                )
                await self._sleep(delay)

                if self._is_stale(request):
                    return self._discard(request, "retry")
                continue

            if self._is_stale(request):
                return self._discard(request, "success")

            request.result = result
            self._result = result
            self._message = self.SUCCESS_MESSAGE
            self._transition(EnhancementStatus.SUCCEEDED, request)

            logger.info(
                "Photo enhanced successfully",
                extra={"user_id": request.owner_id, "attempts": attempt}
            )
            return self.state()

        logger.error(
            f"Generation failed after {policy.max_attempts} attempts",
            extra={"user_id": request.owner_id, "attempts": policy.max_attempts}
        )
        self._message = self.FAILURE_MESSAGE
        self._transition(EnhancementStatus.FAILED, request)
        return self.state()

    # ==================== IDENTITY ====================

    def _on_identity_changed(self, identity: Optional[Identity]):
        """Forget everything owned by the previous identity."""
        if self._status.is_active and self._request is not None:
            logger.info(
                "Identity changed with a request in flight; its result will be discarded",
                extra={"user_id": self._request.owner_id, "status": self._status.value}
            )

        self._request = None
        self._result = None
        self._message = None
        self._persistence_warning = None
        self._transition(EnhancementStatus.IDLE)
