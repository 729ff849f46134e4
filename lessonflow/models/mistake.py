from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel


class MistakeType(str, Enum):
    QUIZ = "quiz"
    EXERCISE = "exercise"
    PRACTICE = "practice"


class MistakeEntry(BaseModel):
    type: MistakeType
    problem: str
    topic: str
    attempts: Optional[int] = None
    user_answer: Optional[str] = None
    correct_answer: Optional[str] = None
    incorrect_steps: list[int] = []
    step_details: Optional[list[dict[str, Any]]] = None


class MistakeResponse(MistakeEntry):
    id: int
    session_id: str
    created_at: Optional[str] = None


class TopicStat(BaseModel):
    topic: str
    count: int
    percent: float


class StepPattern(BaseModel):
    keyword: str
    count: int
    percent_of_exercise_mistakes: float


class DailyMistakes(BaseModel):
    date: str
    quiz: int = 0
    exercise: int = 0
    practice: int = 0


class MistakeSummary(BaseModel):
    total: int = 0
    by_type: dict[str, int] = {}
    topics: list[TopicStat] = []
    this_week: int = 0
    last_week: int = 0
    percent_change: float = 0.0
    days_since_last_mistake: int = 0
    most_challenging_topic: Optional[str] = None
    step_patterns: list[StepPattern] = []
    history: list[DailyMistakes] = []
    recommendations: list[str] = []
