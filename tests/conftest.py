"""Pytest configuration and shared fixtures."""

import asyncio
from typing import List, Optional, Sequence, Union

import pytest

from vibecode.core import (
    EnhancementOrchestrator,
    IdentityChannel,
    ImageCodec,
    PromptStore,
    VibeSession,
)
from vibecode.models.schemas import ImageAsset
from vibecode.providers import InMemoryDocumentStore, InMemoryIdentityProvider
from vibecode.utils.config import Config
from vibecode.utils.errors import PersistenceError, RemoteInvocationError
from vibecode.utils.retry import RetryPolicy


class ScriptedImageClient:
    """Generation client that plays back a list of results or errors."""

    def __init__(self, outcomes: Sequence[Union[ImageAsset, Exception]]):
        self.outcomes = list(outcomes)
        self.calls: List[tuple] = []

    async def generate_image(self, prompt: str, image: ImageAsset) -> ImageAsset:
        self.calls.append((prompt, image))
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class BlockingImageClient:
    """Generation client that waits for the test to release it."""

    def __init__(self, result: Optional[ImageAsset] = None, error: Optional[Exception] = None):
        self.result = result
        self.error = error
        self.calls = 0
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def generate_image(self, prompt: str, image: ImageAsset) -> ImageAsset:
        self.calls += 1
        self.started.set()
        await self.release.wait()
        if self.error is not None:
            raise self.error
        return self.result


class RecordingSleep:
    """Stands in for asyncio.sleep and records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float):
        self.delays.append(seconds)


class FailingWriteStore(InMemoryDocumentStore):
    """Document store whose writes always fail."""

    async def merge(self, path, fields):
        raise PersistenceError("network unreachable")


async def settle(rounds: int = 10):
    """Let background tasks (prompt subscriptions) run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def server_error() -> RemoteInvocationError:
    return RemoteInvocationError("API request failed: internal", 500)


@pytest.fixture
def config():
    """Configuration built without touching the environment."""
    return Config(APP_ID="test-app", PROMPT_POLL_INTERVAL_SECONDS=0.001)


@pytest.fixture
def identity_provider():
    return InMemoryIdentityProvider({"good-token": "user-1", "other-token": "user-2"})


@pytest.fixture
def identity_channel(identity_provider, config):
    return IdentityChannel(identity_provider, config)


@pytest.fixture
def document_store():
    return InMemoryDocumentStore()


@pytest.fixture
def prompt_store(document_store, config):
    return PromptStore(document_store, config)


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def source_image():
    return ImageCodec.encode(b"\x89PNG fake source bytes", "image/png")


@pytest.fixture
def generated_image():
    return ImageCodec.encode(b"enhanced image bytes", "image/png")


@pytest.fixture
def make_orchestrator(identity_channel, prompt_store, sleep):
    """Build an orchestrator around a given generation client."""

    def factory(client, store: Optional[PromptStore] = None):
        return EnhancementOrchestrator(
            identity_channel=identity_channel,
            prompt_store=store or prompt_store,
            client=client,
            retry_policy=RetryPolicy(),
            sleep=sleep,
        )

    return factory


@pytest.fixture
def make_session(identity_channel, prompt_store, make_orchestrator):
    def factory(client):
        orchestrator = make_orchestrator(client)
        return VibeSession(identity_channel, prompt_store, orchestrator)

    return factory


# Sample test data
@pytest.fixture
def sample_prompt():
    """Sample vibe prompt for testing."""
    return "neon glow"
