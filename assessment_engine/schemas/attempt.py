# assessment_engine/schemas/attempt.py
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel


class AttemptStart(BaseModel):
    assessment_id: int


class AttemptStarted(BaseModel):
    attempt_id: int
    attempt_number: int
    total_weight: Decimal
    started_at: datetime
    max_duration_minutes: int | None = None
    closes_at: datetime | None = None
    resumed: bool = False


class AnswerPayload(BaseModel):
    question_id: int
    text_response: str | None = None
    selected_option_id: int | None = None
    selected_option_ids: list[int] | None = None
    boolean_response: bool | None = None
    justification: str | None = None


class AnswerPublic(BaseModel):
    id: int
    question_id: int
    text_response: str | None = None
    selected_option_id: int | None = None
    selected_option_ids: list[int] = []
    boolean_response: bool | None = None
    justification: str | None = None
    answered_at: datetime | None = None

    obtained_weight: Decimal | None = None
    is_correct: bool | None = None
    feedback: str | None = None
    graded_at: datetime | None = None

    model_config = {"from_attributes": True}


class SubmitResult(BaseModel):
    state: str
    obtained_weight: Decimal
    total_weight: Decimal
    mark: Decimal | None = None
    requires_manual_review: bool


class GradeAnswerIn(BaseModel):
    obtained_weight: Decimal
    feedback: str | None = None


class PublishResult(BaseModel):
    obtained_weight: Decimal
    mark: Decimal


class AttemptPublic(BaseModel):
    id: int
    assessment_id: int
    student_id: int
    attempt_number: int
    state: str
    total_weight: Decimal
    obtained_weight: Decimal | None = None
    mark: Decimal | None = None
    time_used_minutes: int | None = None
    started_at: datetime
    submitted_at: datetime | None = None
    graded_at: datetime | None = None
    published_at: datetime | None = None

    model_config = {"from_attributes": True}


class OptionView(BaseModel):
    id: int
    text: str
    position: int
    is_correct: bool | None = None  # only when the key is revealed


class AttemptQuestionView(BaseModel):
    question_id: int
    display_order: int
    kind: str
    prompt: str
    weight: Decimal
    options: list[OptionView] = []
    answer: AnswerPublic | None = None

    # answer key, only when revealed
    correct_option_ids: list[int] | None = None
    boolean_key: bool | None = None


class AttemptDetail(BaseModel):
    attempt: AttemptPublic
    assessment_title: str
    key_revealed: bool
    questions: list[AttemptQuestionView]
