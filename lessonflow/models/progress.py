from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from lessonflow.models.exercise import DetailedStep


class Phase(str, Enum):
    THEORY = "theory"
    QUIZ = "quiz"
    EXERCISES = "exercises"
    COMPLETED = "completed"


class TaskProgress(BaseModel):
    id: str
    task_id: str
    session_id: str
    quiz_passed: bool = False
    exercises_completed: int = 0
    current_phase: Phase = Phase.THEORY
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class QuizResult(BaseModel):
    """Outcome of a quiz as scored by the quiz component.

    Either the pass/fail verdict or the number of wrong answers may be sent.
    """
    passed: Optional[bool] = None
    wrong_answers: Optional[int] = Field(default=None, ge=0)


class ExerciseSubmission(BaseModel):
    problem: Optional[str] = None
    topic: Optional[str] = None
    incorrect_steps: list[int] = []
    step_details: Optional[list[DetailedStep]] = None


class ExerciseResult(BaseModel):
    exercises_completed: int
    current_phase: Phase
    task_completed: bool = False
    warning: Optional[str] = None


class PhaseResponse(BaseModel):
    task_id: str
    phase: Phase


class SessionResponse(BaseModel):
    session_id: str
