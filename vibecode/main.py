"""
Main FastAPI application entry point.

The service is single-user: one VibeSession lives on ``app.state`` for the
whole process, so every HTTP client shares its identity, photo, prompt and
result, and a sign-out from any client signs everyone out.
"""

import os
from contextlib import asynccontextmanager
from typing import Optional, Tuple

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import health, session as session_routes, upgrade
from .core import (
    EnhancementOrchestrator,
    IdentityChannel,
    PromptStore,
    VibeSession,
)
from .providers import (
    DocumentStore,
    GeminiImageClient,
    IdentityProvider,
    InMemoryDocumentStore,
    InMemoryIdentityProvider,
)
from .utils.config import Config, load_config
from .utils.errors import AuthError
from .utils.logger import get_logger, set_log_level

logger = get_logger(__name__)


def build_backends(config: Config) -> Tuple[IdentityProvider, DocumentStore]:
    """Identity provider and document store for the configured backend."""
    if config.backend == "supabase":
        from .providers.supabase import SupabaseDocumentStore, SupabaseIdentityProvider
        from .utils.supabase_client import create_supabase_client

        client = create_supabase_client(config)
        return (
            SupabaseIdentityProvider(client),
            SupabaseDocumentStore(
                client,
                table=config.supabase_table,
                poll_interval_seconds=config.prompt_poll_interval_seconds,
            ),
        )

    logger.info("Using in-memory identity and document store")
    return InMemoryIdentityProvider(), InMemoryDocumentStore()


def build_session(config: Config, gemini: GeminiImageClient) -> VibeSession:
    identity_provider, document_store = build_backends(config)

    identity_channel = IdentityChannel(identity_provider, config)
    prompt_store = PromptStore(document_store, config)
    orchestrator = EnhancementOrchestrator(
        identity_channel=identity_channel,
        prompt_store=prompt_store,
        client=gemini,
        retry_policy=config.retry,
    )
    return VibeSession(identity_channel, prompt_store, orchestrator)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown.

    Builds the session from configuration unless one was injected, signs in
    with the bootstrap token (or anonymously), and closes clients on shutdown.
    """
    logger.info("Application starting up...")

    gemini: Optional[GeminiImageClient] = None

    if getattr(app.state, "session", None) is None:
        config = load_config()
        set_log_level(config.log_level)

        gemini = GeminiImageClient.from_config(config)
        await gemini.initialize()

        app.state.config = config
        app.state.session = build_session(config, gemini)

        try:
            await app.state.session.sign_in()
        except AuthError as e:
            # The app still serves; the user can retry through /session/sign-in
            logger.error(f"Bootstrap sign-in failed: {e}")

    logger.info("Application startup complete")

    yield

    logger.info("Application shutting down...")

    await app.state.session.close()
    if gemini is not None:
        await gemini.close()

    logger.info("Application shutdown complete")


def create_app(session: Optional[VibeSession] = None) -> FastAPI:
    """
    Create the FastAPI application around a single shared session.

    Args:
        session: Pre-built session (tests); built from config when None
    """
    app = FastAPI(
        title="VibeCode",
        description="Photo enhancement from a vibe prompt",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.session = session

    # Add CORS middleware (adjust origins for production)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router, prefix="/health", tags=["health"])
    app.include_router(session_routes.router, prefix="/session", tags=["session"])
    app.include_router(upgrade.router, prefix="/upgrade", tags=["upgrade"])

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "service": "vibecode",
            "version": "1.0.0",
            "status": "running",
            "docs": "/docs",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))

    uvicorn.run(
        "vibecode.main:app",
        host="0.0.0.0",
        port=port,
        reload=True,
        log_level="info",
    )
