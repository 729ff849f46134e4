"""
exercise_flow.py - Screen flow for working through a task's exercises

Drives the learner between problem selection, solving and the completion
screen, feeding each finished problem into the progress tracker. Store
failures are reported through ``last_error`` and leave the flow where it
was, so the learner can simply retry the action.
"""

import logging
from enum import Enum
from typing import Optional, Dict, Any

from lessonflow.db import learning_tasks, mistakes
from lessonflow.db.database import ProgressStoreError
from lessonflow.models.exercise import Problem
from lessonflow.models.progress import Phase
from lessonflow.services.session_identity import NO_SESSION_MESSAGE
from lessonflow.services.task_progress import EXERCISE_QUOTA, TaskProgressTracker

logger = logging.getLogger(__name__)

# Most wrong answers a quiz may have and still count as passed
MAX_QUIZ_MISTAKES = 2

SAVE_FAILED_MESSAGE = "Could not save your progress. Please try again."


def quiz_passed(wrong_answers: int, max_wrong: int = MAX_QUIZ_MISTAKES) -> bool:
    return wrong_answers <= max_wrong


class Screen(str, Enum):
    PROBLEM_SELECTION = "problem_selection"
    SOLVING = "solving"
    COMPLETION = "completion"


class ExerciseFlowController:
    """Per-learner exercise flow for the tracker's bound task."""

    def __init__(self, tracker: TaskProgressTracker, topic: Optional[str] = None):
        if not tracker.task_id:
            raise ValueError("ExerciseFlowController needs a tracker bound to a task")
        self.tracker = tracker
        self.db = tracker.db
        self.topic = topic or tracker.task_id
        self.completed_count = 0
        self.selected_problem: Optional[Problem] = None
        self.incorrect_steps: list[int] = []
        self.is_completing = False
        self.last_error: Optional[str] = None

    @property
    def task_id(self) -> str:
        return self.tracker.task_id

    @property
    def is_all_complete(self) -> bool:
        return self.completed_count >= EXERCISE_QUOTA

    async def load(self):
        progress = await self.tracker.fetch_progress()
        if progress is not None:
            self.completed_count = progress.exercises_completed
        return progress

    def current_screen(self) -> Screen:
        if self.is_completing or self.is_all_complete:
            return Screen.COMPLETION
        if self.selected_problem is None:
            return Screen.PROBLEM_SELECTION
        return Screen.SOLVING

    def select_problem(self, problem: Problem) -> None:
        self.selected_problem = problem
        self.incorrect_steps = []
        self.last_error = None

    def toggle_incorrect_step(self, index: int) -> None:
        if self.selected_problem is None:
            raise ValueError("No problem selected")
        if not 0 <= index < len(self.selected_problem.detailed_solution):
            raise IndexError(f"Step {index} is outside the solution")
        if index in self.incorrect_steps:
            self.incorrect_steps.remove(index)
        else:
            self.incorrect_steps.append(index)

    async def submit_quiz(self, passed: bool) -> Optional[Phase]:
        """Apply the quiz component's verdict. Only a pass touches the store.

        Returns the learner's phase afterwards, or None if the pass could not
        be saved (``last_error`` is set).
        """
        if not passed:
            return self.tracker.get_current_phase()
        try:
            phase = await self.tracker.mark_quiz_passed()
        except ProgressStoreError as exc:
            logger.error("Could not record quiz pass for task %s: %s", self.task_id, exc)
            self.last_error = SAVE_FAILED_MESSAGE
            return None
        if phase is None:
            self.last_error = NO_SESSION_MESSAGE
            return None
        self.last_error = None
        return phase

    async def complete_problem(self) -> bool:
        """Finish the selected problem and advance the exercise count.

        Returns True when progress advanced. Returns False without touching
        the store once the quota is met, when there is no learner session,
        or when the save failed (``last_error`` is set).
        """
        if self.is_all_complete:
            return False

        try:
            new_count = await self.tracker.increment_exercise()
        except ProgressStoreError as exc:
            logger.error("Could not save exercise progress for task %s: %s", self.task_id, exc)
            self.last_error = SAVE_FAILED_MESSAGE
            return False

        if new_count is None:
            self.last_error = NO_SESSION_MESSAGE
            return False

        self.completed_count = new_count
        self.last_error = None

        try:
            await self._record_exercise_mistake()
            if new_count >= EXERCISE_QUOTA:
                await learning_tasks.mark_task_complete(self.db, self.task_id)
        except ProgressStoreError as exc:
            logger.error("Exercise %d saved for task %s but follow-up write failed: %s",
                         new_count, self.task_id, exc)
            self.last_error = SAVE_FAILED_MESSAGE

        if new_count >= EXERCISE_QUOTA:
            self.is_completing = True
        self._reset_problem()
        return True

    async def next_task(self) -> Optional[Dict[str, Any]]:
        return await learning_tasks.get_next_incomplete_task(self.db)

    async def _record_exercise_mistake(self) -> Optional[int]:
        if not self.incorrect_steps or self.selected_problem is None:
            return None
        problem = self.selected_problem
        return await mistakes.record_mistake(
            self.db,
            self.tracker.session_id,
            mistake_type="exercise",
            problem=problem.question,
            topic=self.topic,
            correct_answer=problem.answer or None,
            incorrect_steps=sorted(self.incorrect_steps),
            step_details=[s.model_dump() for s in problem.detailed_solution],
        )

    def _reset_problem(self) -> None:
        self.selected_problem = None
        self.incorrect_steps = []
