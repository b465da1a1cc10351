"""Health check endpoint."""

from datetime import datetime, timezone

from fastapi import APIRouter, Request

router = APIRouter()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@router.get("/")
async def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": _now(),
        "service": "vibecode",
        "version": "1.0.0",
    }


@router.get("/ready")
async def readiness_check(request: Request):
    """Ready once the session has been wired up by the lifespan."""
    return {
        "ready": getattr(request.app.state, "session", None) is not None,
        "timestamp": _now(),
    }
