"""In-process identity provider and document store for local runs and tests."""

import asyncio
import copy
import uuid
from typing import Any, AsyncIterator, Dict, List, Optional, Set

from .base import DocumentStore, IdentityProvider
from ..models.schemas import Identity
from ..utils.errors import AuthError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class InMemoryIdentityProvider(IdentityProvider):
    """
    Issues random ids for anonymous sign-in and accepts any token listed in
    ``known_tokens`` (mapping token -> user id). Unknown tokens are rejected.
    """
    
    def __init__(self, known_tokens: Optional[Dict[str, str]] = None):
        self.known_tokens = dict(known_tokens or {})
    
    async def sign_in(self, token: Optional[str] = None) -> Identity:
        if token is None:
            return Identity(id=uuid.uuid4().hex, anonymous=True)
        
        user_id = self.known_tokens.get(token)
        if user_id is None:
            raise AuthError("Unknown bootstrap token")
        return Identity(id=user_id, anonymous=False)
    
    async def sign_out(self) -> None:
        return None


class InMemoryDocumentStore(DocumentStore):
    """Documents in a dict; every merge is pushed to current subscribers."""
    
    def __init__(self):
        self._documents: Dict[str, Dict[str, Any]] = {}
        self._subscribers: Dict[str, Set[asyncio.Queue]] = {}
    
    def get(self, path: str) -> Optional[Dict[str, Any]]:
        document = self._documents.get(path)
        return copy.deepcopy(document) if document is not None else None
    
    def paths(self) -> List[str]:
        return sorted(self._documents)
    
    async def subscribe(self, path: str) -> AsyncIterator[Optional[Dict[str, Any]]]:
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.setdefault(path, set()).add(queue)
        try:
            yield self.get(path)
            while True:
                yield await queue.get()
        finally:
            self._subscribers[path].discard(queue)
    
    async def merge(self, path: str, fields: Dict[str, Any]) -> None:
        document = self._documents.setdefault(path, {})
        document.update(copy.deepcopy(fields))
        
        for queue in self._subscribers.get(path, ()):
            queue.put_nowait(self.get(path))
