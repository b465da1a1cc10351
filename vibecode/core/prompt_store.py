"""Per-user vibe prompt persistence on top of the document store."""

import asyncio
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Callable, Dict, Optional

from ..models.schemas import VibePrompt
from ..providers.base import DocumentStore
from ..utils.config import Config
from ..utils.errors import PersistenceError
from ..utils.logger import get_logger

logger = get_logger(__name__)

ErrorListener = Callable[[PersistenceError], None]


class PromptStore:
    """Loads and saves the current user's prompt."""
    
    def __init__(
        self,
        store: DocumentStore,
        config: Config,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        """
        Initialize prompt store.
        
        Args:
            store: Document store backend
            config: Application config (app namespace, resubscribe delay)
            clock: Timestamp source for lastUpdated
        """
        self.store = store
        self.config = config
        self.clock = clock
        self.resubscribe_delay_seconds = config.prompt_poll_interval_seconds
        self._last_written: Dict[str, datetime] = {}
    
    def _to_prompt(self, owner_id: str, document: Optional[Dict[str, Any]]) -> Optional[VibePrompt]:
        if document is None:
            return None
        return VibePrompt(
            owner_id=owner_id,
            text=document.get("text") or "",
            last_updated=document.get("last_updated"),
        )
    
    async def load(
        self,
        owner_id: str,
        on_error: Optional[ErrorListener] = None,
    ) -> AsyncIterator[Optional[VibePrompt]]:
        """
        Follow the owner's prompt.
        
        Yields the stored prompt (or None when nothing is stored) now and on
        every remote change. Never finishes by itself; cancel the consuming
        task to stop it. A failing subscription is reported to ``on_error``
        and re-established after a delay instead of ending the sequence.
        
        Args:
            owner_id: Identity id whose prompt to follow
            on_error: Called with a PersistenceError when the subscription fails
        """
        path = self.config.document_path(owner_id)
        
        while True:
            try:
                async for document in self.store.subscribe(path):
                    prompt = self._to_prompt(owner_id, document)
                    if prompt is None:
                        logger.info("No vibe data found for this user", extra={"user_id": owner_id})
                    else:
                        logger.info(
                            "User vibe data loaded",
                            extra={"user_id": owner_id, "text_length": len(prompt.text)}
                        )
                    yield prompt
            except PersistenceError as e:
                error = e
            except Exception as e:
                error = PersistenceError(f"Prompt subscription failed: {e}")
            else:
                return
            
            logger.warning(
                "Prompt subscription failed, resubscribing",
                extra={
                    "user_id": owner_id,
                    "error": str(error),
                    "delay_seconds": self.resubscribe_delay_seconds,
                }
            )
            if on_error is not None:
                on_error(error)
            await asyncio.sleep(self.resubscribe_delay_seconds)
    
    async def persist(self, owner_id: str, text: str) -> VibePrompt:
        """
        Save prompt text for an owner.
        
        Only ``text`` and ``last_updated`` are written; other fields on the
        stored document are preserved. ``last_updated`` never goes backwards
        for a given owner, even if the clock does.
        
        Returns:
            The prompt as written
            
        Raises:
            PersistenceError: If the write fails
        """
        now = self.clock()
        previous = self._last_written.get(owner_id)
        if previous is not None and now < previous:
            now = previous
        
        path = self.config.document_path(owner_id)
        try:
            await self.store.merge(path, {"text": text, "last_updated": now.isoformat()})
        except PersistenceError:
            logger.error("Error saving prompt", extra={"user_id": owner_id}, exc_info=True)
            raise
        except Exception as e:
            logger.error("Error saving prompt", extra={"user_id": owner_id}, exc_info=True)
            raise PersistenceError(f"Failed to save prompt: {e}") from e
        
        self._last_written[owner_id] = now
        logger.info("Prompt saved", extra={"user_id": owner_id, "text_length": len(text)})
        
        return VibePrompt(owner_id=owner_id, text=text, last_updated=now)
