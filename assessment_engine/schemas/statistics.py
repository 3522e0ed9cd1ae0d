# assessment_engine/schemas/statistics.py
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel


class GeneralMetrics(BaseModel):
    total_students: int = 0
    total_attempts: int = 0
    graded_attempts: int = 0
    mean_mark: Decimal = Decimal("0")
    max_mark: Decimal = Decimal("0")
    min_mark: Decimal = Decimal("0")
    mean_time_used_minutes: Decimal = Decimal("0")
    passed: int = 0
    failed: int = 0
    pass_rate: Decimal = Decimal("0")


class QuestionPerformance(BaseModel):
    question_id: int
    prompt: str
    kind: str
    max_weight: Decimal
    total_answers: int = 0
    correct_answers: int = 0
    mean_obtained_weight: Decimal = Decimal("0")
    correct_percentage: Decimal = Decimal("0")


class BestAttempt(BaseModel):
    student_id: int
    attempt_id: int
    attempt_number: int
    state: str
    mark: Decimal
    obtained_weight: Decimal
    total_weight: Decimal
    submitted_at: datetime | None = None
    time_used_minutes: int | None = None
    passed: bool


class AssessmentStatistics(BaseModel):
    assessment_id: int
    title: str
    passing_mark: Decimal
    general: GeneralMetrics
    questions: list[QuestionPerformance]
    mark_distribution: dict[str, int]
    students: list[BestAttempt]
