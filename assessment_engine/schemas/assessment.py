# assessment_engine/schemas/assessment.py
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from assessment_engine.core.config import settings
from assessment_engine.models.assessment import AssessmentState


class AssessmentBase(BaseModel):
    title: str
    description: str | None = None
    section_id: int | None = None
    passing_mark: Decimal = Field(default=settings.DEFAULT_PASSING_MARK, ge=0, le=10)
    opens_at: datetime | None = None
    closes_at: datetime | None = None
    max_duration_minutes: int | None = Field(default=None, gt=0)
    allowed_attempts: int = Field(default=1, ge=1)
    questions_to_show: int = Field(default=settings.DEFAULT_QUESTIONS_TO_SHOW, ge=1)
    shuffle_questions: bool = False
    reveal_answers: bool = True


class AssessmentCreate(AssessmentBase):
    room_id: int


class AssessmentUpdate(BaseModel):
    """Patch: only the fields present in the request are applied."""
    title: str | None = None
    description: str | None = None
    section_id: int | None = None
    passing_mark: Decimal | None = Field(default=None, ge=0, le=10)
    opens_at: datetime | None = None
    closes_at: datetime | None = None
    max_duration_minutes: int | None = Field(default=None, gt=0)
    allowed_attempts: int | None = Field(default=None, ge=1)
    questions_to_show: int | None = Field(default=None, ge=1)
    shuffle_questions: bool | None = None
    reveal_answers: bool | None = None
    state: AssessmentState | None = None


class AssessmentPublic(AssessmentBase):
    id: int
    room_id: int
    created_by: int
    state: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}
