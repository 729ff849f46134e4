"""Task progress endpoints: load progress, record a quiz result, finish exercises."""

import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from lessonflow.db.database import get_db, ProgressStoreError
from lessonflow.models.exercise import Problem
from lessonflow.models.progress import (
    ExerciseResult,
    ExerciseSubmission,
    PhaseResponse,
    QuizResult,
    TaskProgress,
)
from lessonflow.services.exercise_flow import ExerciseFlowController, quiz_passed
from lessonflow.services.session_identity import NO_SESSION_MESSAGE, header_session
from lessonflow.services.task_progress import TaskProgressTracker

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/progress", tags=["progress"])


# ── Helpers ──────────────────────────────────────────────────────────

def _tracker(request: Request, db, task_id: str) -> TaskProgressTracker:
    return TaskProgressTracker(db, header_session(request), task_id=task_id)


def _unavailable(exc: Exception) -> HTTPException:
    logger.error("Progress store unavailable: %s", exc)
    return HTTPException(status_code=503, detail="Progress could not be saved. Please try again.")


async def _load_flow(request: Request, db, task_id: str, topic: str | None = None) -> ExerciseFlowController:
    flow = ExerciseFlowController(_tracker(request, db, task_id), topic=topic)
    try:
        progress = await flow.load()
    except ProgressStoreError as exc:
        raise _unavailable(exc)
    if progress is None:
        raise HTTPException(status_code=401, detail=NO_SESSION_MESSAGE)
    return flow


def _raise_flow_error(flow: ExerciseFlowController) -> None:
    if flow.last_error == NO_SESSION_MESSAGE:
        raise HTTPException(status_code=401, detail=flow.last_error)
    raise HTTPException(status_code=503, detail=flow.last_error)


# ── Endpoints ────────────────────────────────────────────────────────

@router.get("/tasks/{task_id}", response_model=TaskProgress)
async def get_task_progress(task_id: str, request: Request, db=Depends(get_db)):
    """Get the learner's progress on a task, starting it in the theory phase if new."""
    tracker = _tracker(request, db, task_id)
    try:
        progress = await tracker.fetch_progress()
    except ProgressStoreError as exc:
        raise _unavailable(exc)
    if progress is None:
        raise HTTPException(status_code=401, detail=NO_SESSION_MESSAGE)
    return progress


@router.get("/tasks/{task_id}/phase", response_model=PhaseResponse)
async def get_task_phase(task_id: str, request: Request, db=Depends(get_db)):
    flow = await _load_flow(request, db, task_id)
    return PhaseResponse(task_id=task_id, phase=flow.tracker.get_current_phase())


@router.post("/tasks/{task_id}/quiz", response_model=TaskProgress)
async def submit_quiz_result(task_id: str, result: QuizResult, request: Request, db=Depends(get_db)):
    """Record the quiz verdict; a pass opens the exercises phase."""
    if result.passed is None and result.wrong_answers is None:
        raise HTTPException(status_code=422, detail="Send either 'passed' or 'wrong_answers'")
    passed = result.passed if result.passed is not None else quiz_passed(result.wrong_answers)

    flow = await _load_flow(request, db, task_id)
    phase = await flow.submit_quiz(passed)
    if phase is None:
        _raise_flow_error(flow)
    return flow.tracker.progress


@router.post("/tasks/{task_id}/exercises", response_model=ExerciseResult)
async def complete_exercise(
    task_id: str,
    submission: ExerciseSubmission,
    request: Request,
    db=Depends(get_db),
):
    """Count one finished exercise, recording flagged solution steps as a mistake."""
    flow = await _load_flow(request, db, task_id, topic=submission.topic)

    if submission.problem:
        steps = submission.step_details or []
        flow.select_problem(Problem(id=task_id, question=submission.problem, detailed_solution=steps))
        for idx in sorted(set(submission.incorrect_steps)):
            try:
                flow.toggle_incorrect_step(idx)
            except IndexError as exc:
                raise HTTPException(status_code=422, detail=str(exc))

    advanced = await flow.complete_problem()
    if not advanced and flow.last_error:
        _raise_flow_error(flow)

    return ExerciseResult(
        exercises_completed=flow.completed_count,
        current_phase=flow.tracker.get_current_phase(),
        task_completed=flow.is_all_complete,
        # Progress advanced but the flagged steps or task completion were not saved
        warning=flow.last_error if advanced else None,
    )
