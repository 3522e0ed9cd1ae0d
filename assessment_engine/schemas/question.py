# assessment_engine/schemas/question.py
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from assessment_engine.models.question import QuestionKind


class OptionCreate(BaseModel):
    text: str
    is_correct: bool = False
    position: int = 0


class OptionPublic(BaseModel):
    id: int
    text: str
    position: int
    is_correct: bool

    model_config = {"from_attributes": True}


class QuestionBase(BaseModel):
    prompt: str
    # matches the Numeric(8, 2) column so nothing is rounded on write
    weight: Decimal = Field(default=Decimal("1.0"), gt=0, max_digits=8, decimal_places=2)
    position: int = 0


class QuestionCreate(QuestionBase):
    kind: QuestionKind
    options: list[OptionCreate] = []
    boolean_key: bool | None = None


class QuestionUpdate(BaseModel):
    prompt: str | None = None
    weight: Decimal | None = Field(default=None, gt=0, max_digits=8, decimal_places=2)
    position: int | None = None
    # when given, replaces the whole option set
    options: list[OptionCreate] | None = None
    boolean_key: bool | None = None


class QuestionPublic(QuestionBase):
    id: int
    assessment_id: int
    kind: str
    boolean_key: bool | None = None
    options: list[OptionPublic] = []
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class QuestionPosition(BaseModel):
    question_id: int
    position: int


class QuestionReorder(BaseModel):
    items: list[QuestionPosition]
