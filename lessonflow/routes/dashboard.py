"""Parent dashboard endpoints.

Read-only views over learners' task progress and mistakes: every session's
progress on a task, one session's progress across tasks, and the mistake
overview for a linked learner.

These views are unauthenticated: any caller with a session header can read
any session's progress and mistakes by id. Account linking and access
control belong to the deployment in front of this service.
"""

from fastapi import APIRouter, Depends, HTTPException
from lessonflow.db.database import get_db, ProgressStoreError
from lessonflow.db import mistakes, task_progress
from lessonflow.models.mistake import MistakeSummary
from lessonflow.models.progress import TaskProgress
from lessonflow.services.mistake_patterns import summarize_mistakes

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("/tasks/{task_id}/progress", response_model=list[TaskProgress])
async def get_task_progress_overview(task_id: str, db=Depends(get_db)):
    try:
        rows = await task_progress.list_progress_for_task(db, task_id)
    except ProgressStoreError:
        raise HTTPException(status_code=503, detail="Progress is unavailable right now")
    return [TaskProgress(**row) for row in rows]


@router.get("/sessions/{session_id}/progress", response_model=list[TaskProgress])
async def get_session_progress(session_id: str, db=Depends(get_db)):
    try:
        rows = await task_progress.list_progress_for_session(db, session_id)
    except ProgressStoreError:
        raise HTTPException(status_code=503, detail="Progress is unavailable right now")
    return [TaskProgress(**row) for row in rows]


@router.get("/sessions/{session_id}/mistakes/summary", response_model=MistakeSummary)
async def get_session_mistake_summary(session_id: str, db=Depends(get_db)):
    try:
        rows = await mistakes.list_mistakes(db, session_id)
    except ProgressStoreError:
        raise HTTPException(status_code=503, detail="Mistakes are unavailable right now")
    return summarize_mistakes(rows)
