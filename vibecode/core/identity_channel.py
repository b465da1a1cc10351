"""Sign-in/sign-out and identity-change notification."""

from typing import Callable, List, Optional

from ..models.schemas import Identity
from ..providers.base import IdentityProvider
from ..utils.config import Config
from ..utils.errors import AuthError
from ..utils.logger import get_logger

logger = get_logger(__name__)

IdentityListener = Callable[[Optional[Identity]], None]


class IdentityChannel:
    """
    Owns the current identity.
    
    Listeners are called exactly once per transition (none -> identity,
    identity -> none, or identity -> different identity) and never for a
    transition that leaves the identity unchanged.
    """
    
    def __init__(self, provider: IdentityProvider, config: Optional[Config] = None):
        """
        Initialize channel.
        
        Args:
            provider: Identity provider to delegate to
            config: Application config; supplies the bootstrap token
        """
        self.provider = provider
        self.bootstrap_token = config.initial_auth_token if config else None
        self._current: Optional[Identity] = None
        self._listeners: List[IdentityListener] = []
    
    @property
    def current(self) -> Optional[Identity]:
        return self._current
    
    def on_identity_changed(self, listener: IdentityListener) -> Callable[[], None]:
        """
        Register a listener.
        
        Returns:
            Callable that removes the listener; calling it twice is harmless
        """
        self._listeners.append(listener)
        
        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        
        return unsubscribe
    
    async def sign_in(self, token: Optional[str] = None) -> Identity:
        """
        Sign in with a token, the configured bootstrap token, or anonymously.
        
        Raises:
            AuthError: If the provider rejects the credentials; the current
                identity is reset to none
        """
        token = token or self.bootstrap_token
        
        try:
            identity = await self.provider.sign_in(token)
        except AuthError as e:
            logger.error(
                "Sign-in failed",
                extra={"with_token": token is not None, "error": str(e)}
            )
            self._set(None)
            raise
        
        logger.info(
            "User is signed in",
            extra={"user_id": identity.id, "anonymous": identity.anonymous}
        )
        self._set(identity)
        return identity
    
    async def sign_out(self) -> None:
        """
        Sign out. Idempotent: signing out with no identity is a no-op.
        
        Raises:
            AuthError: If the provider fails; the identity is left unchanged
        """
        if self._current is None:
            return
        
        await self.provider.sign_out()
        
        logger.info("User is signed out", extra={"user_id": self._current.id})
        self._set(None)
    
    def _set(self, identity: Optional[Identity]):
        if identity == self._current:
            return
        self._current = identity
        for listener in list(self._listeners):
            listener(identity)
