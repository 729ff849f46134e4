import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from lessonflow.db.database import get_db, ProgressStoreError
from lessonflow.db import mistakes as store
from lessonflow.models.mistake import MistakeEntry, MistakeResponse, MistakeSummary
from lessonflow.services.mistake_patterns import summarize_mistakes
from lessonflow.services.session_identity import SESSION_HEADER

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/mistakes", tags=["mistakes"])


def _session_id(request: Request) -> str:
    return request.headers.get(SESSION_HEADER, "").strip()


@router.get("", response_model=list[MistakeResponse])
async def list_mistakes(request: Request, db=Depends(get_db)):
    try:
        return await store.list_mistakes(db, _session_id(request))
    except ProgressStoreError:
        raise HTTPException(status_code=503, detail="Mistakes are unavailable right now")


@router.post("", response_model=MistakeResponse, status_code=201)
async def record_mistake(entry: MistakeEntry, request: Request, db=Depends(get_db)):
    try:
        mistake_id = await store.record_mistake(
            db,
            _session_id(request),
            mistake_type=entry.type.value,
            problem=entry.problem,
            topic=entry.topic,
            attempts=entry.attempts,
            user_answer=entry.user_answer,
            correct_answer=entry.correct_answer,
            incorrect_steps=entry.incorrect_steps,
            step_details=entry.step_details,
        )
        return await store.get_mistake(db, mistake_id)
    except ProgressStoreError:
        raise HTTPException(status_code=503, detail="Mistake could not be saved. Please try again.")


@router.get("/summary", response_model=MistakeSummary)
async def mistake_summary(request: Request, db=Depends(get_db)):
    try:
        rows = await store.list_mistakes(db, _session_id(request))
    except ProgressStoreError:
        raise HTTPException(status_code=503, detail="Mistakes are unavailable right now")
    return summarize_mistakes(rows)


@router.delete("/{mistake_id}")
async def delete_mistake(mistake_id: int, request: Request, db=Depends(get_db)):
    try:
        deleted = await store.delete_mistake(db, mistake_id, _session_id(request))
    except ProgressStoreError:
        raise HTTPException(status_code=503, detail="Mistake could not be deleted. Please try again.")
    if not deleted:
        raise HTTPException(status_code=404, detail="Mistake not found")
    return {"deleted": mistake_id}


@router.delete("")
async def clear_mistakes(request: Request, db=Depends(get_db)):
    session_id = _session_id(request)
    try:
        removed = await store.clear_mistakes(db, session_id)
    except ProgressStoreError:
        raise HTTPException(status_code=503, detail="Mistakes could not be cleared. Please try again.")
    logger.info("Cleared %d mistakes for session %s", removed, session_id)
    return {"deleted": removed}
