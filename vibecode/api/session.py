"""Session routes: identity, prompt, photo upload and enhancement."""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, File, HTTPException, Request, Response, UploadFile
from pydantic import BaseModel

from ..core.session import VibeSession
from ..models.enums import EnhancementStatus
from ..models.schemas import Identity, UIState
from ..utils.errors import (
    AuthError,
    ImageProcessingError,
    SubmissionRejectedError,
    ValidationError,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


# ============================================================================
# REQUEST / RESPONSE MODELS
# ============================================================================

class SignInRequest(BaseModel):
    token: Optional[str] = None


class PromptUpdate(BaseModel):
    text: str


class SessionState(BaseModel):
    """Everything a client needs to render the page."""
    identity: Optional[Identity] = None
    prompt: str
    has_image: bool
    has_result: bool
    status: EnhancementStatus
    attempt: int
    ui: UIState


def get_session(request: Request) -> VibeSession:
    session = getattr(request.app.state, "session", None)
    if session is None:
        raise HTTPException(status_code=503, detail="Session not initialized")
    return session


def describe(session: VibeSession) -> SessionState:
    state = session.orchestrator.state()
    return SessionState(
        identity=session.identity,
        prompt=session.prompt_text,
        has_image=session.image is not None,
        has_result=state.result is not None,
        status=state.status,
        attempt=state.attempt,
        ui=session.ui_state(),
    )


def error(status_code: int, session: VibeSession, message: str) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail={"error": message, "state": describe(session).model_dump(mode="json")},
    )


# ============================================================================
# ROUTES
# ============================================================================

@router.get("/state", response_model=SessionState)
async def get_state(request: Request):
    return describe(get_session(request))


@router.post("/sign-in", response_model=SessionState)
async def sign_in(request: Request, body: Optional[SignInRequest] = None):
    session = get_session(request)
    try:
        await session.sign_in(body.token if body else None)
    except AuthError as e:
        raise error(401, session, str(e))
    return describe(session)


@router.post("/sign-out", response_model=SessionState)
async def sign_out(request: Request):
    session = get_session(request)
    try:
        await session.sign_out()
    except AuthError as e:
        raise error(502, session, str(e))
    return describe(session)


@router.put("/prompt", response_model=SessionState)
async def update_prompt(request: Request, body: PromptUpdate):
    session = get_session(request)
    session.set_prompt(body.text)
    return describe(session)


@router.post("/image", response_model=SessionState)
async def upload_image(request: Request, file: UploadFile = File(...)):
    session = get_session(request)
    data = await file.read()
    try:
        session.upload_image(data, file.content_type, file.filename)
    except ImageProcessingError as e:
        raise error(415, session, str(e))
    return describe(session)


@router.post("/enhance", response_model=SessionState, status_code=202)
async def enhance(request: Request, background_tasks: BackgroundTasks):
    """
    Start an enhancement and return at once; poll /state for progress.
    
    Rejections happen before anything runs: 409 while a request is active,
    422 when identity, photo or prompt is missing.
    """
    session = get_session(request)
    try:
        enhancement = session.start_enhancement()
    except SubmissionRejectedError as e:
        raise error(409, session, str(e))
    except ValidationError as e:
        raise error(422, session, str(e))
    
    background_tasks.add_task(session.orchestrator.run, enhancement)
    return describe(session)


@router.get("/result")
async def get_result(request: Request):
    """The latest generated image as raw bytes."""
    session = get_session(request)
    result = session.result
    if result is None:
        raise HTTPException(status_code=404, detail="No enhanced image available")
    return Response(content=session.codec.decode(result), media_type=result.mime_type)
