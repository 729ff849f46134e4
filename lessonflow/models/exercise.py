from typing import Literal

from pydantic import BaseModel


class DetailedStep(BaseModel):
    step: str
    explanation: str = ""


class Problem(BaseModel):
    id: str
    question: str
    answer: str = ""
    hint: str = ""
    difficulty: Literal["easy", "medium", "hard"] = "medium"
    detailed_solution: list[DetailedStep] = []
