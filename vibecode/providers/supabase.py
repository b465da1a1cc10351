"""
Supabase-backed identity provider and document store.

Documents live in one table keyed by their path::

    create table vibe_documents (
        path text primary key,
        text text,
        last_updated timestamptz
    );

Merge writes are upserts that only name the columns being written, so any
other column on the row is preserved. The Supabase client is synchronous;
every call runs in a worker thread to keep the event loop free.
"""

import asyncio
from typing import Any, AsyncIterator, Dict, Optional

from supabase import Client

from .base import DocumentStore, IdentityProvider
from ..models.schemas import Identity
from ..utils.errors import AuthError, PersistenceError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class SupabaseIdentityProvider(IdentityProvider):
    """Identity through Supabase auth."""
    
    def __init__(self, client: Client):
        self._client = client
    
    async def sign_in(self, token: Optional[str] = None) -> Identity:
        """
        Sign in.
        
        Args:
            token: Access token issued to this user elsewhere; anonymous
                sign-in when None
                
        Raises:
            AuthError: If Supabase rejects the token or the anonymous sign-in
        """
        try:
            if token:
                response = await asyncio.to_thread(self._client.auth.get_user, token)
                # Row-level security needs the token on table requests too
                self._client.postgrest.auth(token)
            else:
                response = await asyncio.to_thread(self._client.auth.sign_in_anonymously)
        except Exception as e:
            raise AuthError(f"Supabase sign-in failed: {e}") from e
        
        user = getattr(response, "user", None)
        if user is None:
            raise AuthError("Supabase sign-in returned no user")
        
        return Identity(
            id=str(user.id),
            anonymous=bool(getattr(user, "is_anonymous", token is None)),
        )
    
    async def sign_out(self) -> None:
        try:
            await asyncio.to_thread(self._client.auth.sign_out)
        except Exception as e:
            raise AuthError(f"Supabase sign-out failed: {e}") from e


class SupabaseDocumentStore(DocumentStore):
    """Documents as rows of a Supabase table."""
    
    def __init__(
        self,
        client: Client,
        table: str = "vibe_documents",
        poll_interval_seconds: float = 2.0,
    ):
        """
        Initialize store.
        
        Args:
            client: Supabase client (shared with the identity provider)
            table: Table holding one row per document path
            poll_interval_seconds: How often subscriptions re-read the row
        """
        self._client = client
        self.table = table
        self.poll_interval_seconds = poll_interval_seconds
    
    def _fetch_row(self, path: str) -> Optional[Dict[str, Any]]:
        result = self._client.table(self.table)\
            .select("*")\
            .eq("path", path)\
            .limit(1)\
            .execute()
        
        if not result.data:
            return None
        row = dict(result.data[0])
        row.pop("path", None)
        return row
    
    def _upsert_row(self, path: str, fields: Dict[str, Any]) -> None:
        self._client.table(self.table)\
            .upsert({"path": path, **fields}, on_conflict="path")\
            .execute()
    
    async def read(self, path: str) -> Optional[Dict[str, Any]]:
        """One-shot read of a document."""
        try:
            return await asyncio.to_thread(self._fetch_row, path)
        except Exception as e:
            raise PersistenceError(f"Failed to read {path}: {e}") from e
    
    async def subscribe(self, path: str) -> AsyncIterator[Optional[Dict[str, Any]]]:
        """Poll the row and yield whenever it differs from the last value seen."""
        first = True
        last: Optional[Dict[str, Any]] = None
        
        while True:
            current = await self.read(path)
            if first or current != last:
                first = False
                last = current
                yield current
            await asyncio.sleep(self.poll_interval_seconds)
    
    async def merge(self, path: str, fields: Dict[str, Any]) -> None:
        try:
            await asyncio.to_thread(self._upsert_row, path, fields)
        except Exception as e:
            raise PersistenceError(f"Failed to write {path}: {e}") from e
        
        logger.debug("Document merged", extra={"path": path, "fields": sorted(fields)})
