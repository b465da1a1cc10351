"""Abstract base classes for external collaborators."""

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from ..models.schemas import Identity
from ..utils.logger import get_logger

logger = get_logger(__name__)


class BaseProvider(ABC):
    """Abstract base class for HTTP API providers."""
    
    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize provider.
        
        Args:
            api_key: API key for authentication
            base_url: Base URL for API endpoints
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self.client: Optional[httpx.AsyncClient] = None
    
    async def __aenter__(self):
        """Async context manager entry."""
        await self.initialize()
        return self
    
    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
    
    async def initialize(self):
        """Initialize the HTTP client."""
        if self.client is None:
            self.client = httpx.AsyncClient(
                timeout=self.timeout,
                headers=self._get_default_headers(),
                transport=self.transport,
            )
            logger.info(
                f"{self.__class__.__name__} initialized",
                extra={"provider": self.__class__.__name__}
            )
    
    async def close(self):
        """Close the HTTP client."""
        if self.client:
            await self.client.aclose()
            self.client = None
            logger.info(
                f"{self.__class__.__name__} closed",
                extra={"provider": self.__class__.__name__}
            )
    
    @abstractmethod
    def _get_default_headers(self) -> dict:
        """Get default headers for requests."""
        pass
    
    def _ensure_client(self):
        """Ensure client is initialized."""
        if self.client is None:
            raise RuntimeError(
                f"{self.__class__.__name__} not initialized. "
                "Call initialize() or use as async context manager."
            )


class IdentityProvider(ABC):
    """Signs users in and out. Implementations raise AuthError on rejection."""
    
    @abstractmethod
    async def sign_in(self, token: Optional[str] = None) -> Identity:
        """Sign in with a bootstrap token, or anonymously when token is None."""
        pass
    
    @abstractmethod
    async def sign_out(self) -> None:
        pass


class DocumentStore(ABC):
    """Remote documents addressed by path."""
    
    @abstractmethod
    def subscribe(self, path: str) -> AsyncIterator[Optional[Dict[str, Any]]]:
        """
        Yield the document at path now and again whenever it changes.
        
        Yields None while the document does not exist. The sequence never
        ends on its own; read failures raise PersistenceError.
        """
        pass
    
    @abstractmethod
    async def merge(self, path: str, fields: Dict[str, Any]) -> None:
        """
        Write fields into the document, leaving other fields untouched.
        
        Raises:
            PersistenceError: If the write fails
        """
        pass
