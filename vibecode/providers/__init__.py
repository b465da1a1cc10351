"""Clients for the external identity, storage, and generation services."""

from .base import DocumentStore, IdentityProvider
from .gemini import GeminiImageClient
from .memory import InMemoryDocumentStore, InMemoryIdentityProvider

__all__ = [
    "DocumentStore",
    "IdentityProvider",
    "GeminiImageClient",
    "InMemoryDocumentStore",
    "InMemoryIdentityProvider",
]
