from fastapi import APIRouter
from lessonflow.models.progress import SessionResponse
from lessonflow.services.session_identity import new_session_id

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


@router.post("", response_model=SessionResponse, status_code=201)
async def create_session():
    """Issue a learner session id for the client to persist and send as X-Session-Id."""
    return SessionResponse(session_id=new_session_id())
