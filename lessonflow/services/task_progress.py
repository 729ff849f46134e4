"""
task_progress.py - Progress state machine for a single learning task

Tracks one learner session through a task: theory -> quiz -> exercises ->
completed. The phase is always derived from two facts, whether the quiz was
passed and how many exercises were completed, and is stored alongside them
for querying.

Provides:
- derive_phase(quiz_passed, exercises_completed)
- TaskProgressTracker.fetch_progress(task_id)
- TaskProgressTracker.mark_quiz_passed(task_id)
- TaskProgressTracker.increment_exercise(task_id)
- TaskProgressTracker.get_current_phase()

Writes are confirmed before the tracker's local snapshot changes: if the
store raises, the snapshot keeps its previous value and the error reaches
the caller.
"""

import logging
from typing import Optional, Tuple

import aiosqlite

from lessonflow.db import task_progress as store
from lessonflow.models.progress import Phase, TaskProgress
from lessonflow.services.session_identity import SessionProvider

logger = logging.getLogger(__name__)

# Exercises a learner must finish to complete a task
EXERCISE_QUOTA = 4


def derive_phase(quiz_passed: bool, exercises_completed: int) -> Phase:
    if not quiz_passed:
        return Phase.THEORY
    if exercises_completed >= EXERCISE_QUOTA:
        return Phase.COMPLETED
    return Phase.EXERCISES


class TaskProgressTracker:
    """State machine over the task_progress row for one learner session.

    Args:
        db: open database connection.
        session: provider of the learner's session id.
        task_id: default task used when an operation is called without one.
    """

    def __init__(
        self,
        db: aiosqlite.Connection,
        session: SessionProvider,
        task_id: Optional[str] = None,
    ):
        self.db = db
        self.task_id = task_id
        self._session = session
        self.progress: Optional[TaskProgress] = None

    @property
    def session_id(self) -> Optional[str]:
        return self._session()

    def _key(self, task_id: Optional[str]) -> Optional[Tuple[str, str]]:
        target = task_id or self.task_id
        if not target:
            return None
        session_id = self._session()
        if not session_id:
            logger.debug("No learner session, skipping progress for task %s", target)
            return None
        return target, session_id

    async def fetch_progress(self, task_id: Optional[str] = None) -> Optional[TaskProgress]:
        """Load the progress row, creating it in the theory phase if it does not exist."""
        key = self._key(task_id)
        if key is None:
            return None

        row = await store.find_or_create_task_progress(self.db, *key)
        self.progress = TaskProgress(**row)
        return self.progress

    async def mark_quiz_passed(self, task_id: Optional[str] = None) -> Optional[Phase]:
        """Record a passed quiz and open the exercises phase. Safe to call repeatedly."""
        key = self._key(task_id)
        if key is None:
            return None
        target, session_id = key

        row = await store.get_task_progress(self.db, target, session_id)
        count = row["exercises_completed"] if row else 0
        # A row that already finished its exercises stays completed
        phase = derive_phase(True, count)

        created = False
        if row is None:
            created = await store.insert_task_progress(
                self.db, target, session_id,
                quiz_passed=True, exercises_completed=0, current_phase=phase.value,
            )
        if not created:
            await store.update_task_progress(
                self.db, target, session_id, quiz_passed=True, current_phase=phase.value,
            )

        self._apply(target, quiz_passed=True, exercises_completed=count, phase=phase)
        return phase

    async def increment_exercise(self, task_id: Optional[str] = None) -> Optional[int]:
        """Count one more finished exercise. Returns the new count.

        Exercises are only reachable past the quiz gate, so the quiz is
        recorded as passed whether or not a row existed.
        """
        key = self._key(task_id)
        if key is None:
            return None
        target, session_id = key

        row = await store.get_task_progress(self.db, target, session_id)
        current = row["exercises_completed"] if row else 0
        new_count = current + 1
        phase = derive_phase(True, new_count)

        created = False
        if row is None:
            created = await store.insert_task_progress(
                self.db, target, session_id,
                quiz_passed=True, exercises_completed=new_count, current_phase=phase.value,
            )
        if not created:
            await store.update_task_progress(
                self.db, target, session_id,
                quiz_passed=True, exercises_completed=new_count, current_phase=phase.value,
            )

        self._apply(target, quiz_passed=True, exercises_completed=new_count, phase=phase)
        if phase is Phase.COMPLETED and current < EXERCISE_QUOTA:
            logger.info("Task %s completed by session %s", target, session_id)
        return new_count

    def get_current_phase(self) -> Phase:
        if self.progress is None:
            return Phase.THEORY
        return derive_phase(self.progress.quiz_passed, self.progress.exercises_completed)

    def _apply(self, task_id: str, *, quiz_passed: bool, exercises_completed: int, phase: Phase) -> None:
        """Patch the local snapshot after a confirmed write to the same task."""
        if self.progress is None or self.progress.task_id != task_id:
            return
        self.progress = self.progress.model_copy(update={
            "quiz_passed": quiz_passed,
            "exercises_completed": exercises_completed,
            "current_phase": phase,
        })
