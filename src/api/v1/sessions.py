"""Endpoints for images cached by session id."""

from fastapi import APIRouter

from dependencies.services import SessionStoreDep
from schemas.api import ApiResponse, SessionEnded, SessionImage
from services.ai.exceptions import SessionNotFoundError


router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.get("/{session_id}/image", response_model=ApiResponse[SessionImage])
def get_session_image(
    session_id: str, sessions: SessionStoreDep
) -> ApiResponse[SessionImage]:
    """Return the image registered under `session_id`, or 404 once expired."""
    session = sessions.get(session_id)
    if session is None:
        raise SessionNotFoundError(session_id)
    return ApiResponse(
        data=SessionImage(session_id=session.session_id, image=session.image),
        message="Session image retrieved",
    )


@router.post("/{session_id}/end", response_model=ApiResponse[SessionEnded])
def end_session(session_id: str, sessions: SessionStoreDep) -> ApiResponse[SessionEnded]:
    """Forget a session. Ending an unknown or expired session still succeeds."""
    existed = sessions.end(session_id)
    return ApiResponse(
        data=SessionEnded(session_id=session_id, existed=existed),
        message="Session ended" if existed else "Session already gone",
    )
