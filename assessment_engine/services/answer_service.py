# assessment_engine/services/answer_service.py
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from assessment_engine.core.clock import as_utc, utcnow
from assessment_engine.core.config import settings
from assessment_engine.core.errors import (
    AnswerNotFound,
    AttemptNotActive,
    AttemptTimeExpired,
    Conflict,
    InvalidAnswer,
    NotOpen,
    QuestionNotInAttempt,
)
from assessment_engine.models.answer import Answer, AnswerSelection
from assessment_engine.models.attempt import Attempt, AttemptState
from assessment_engine.models.question import Question, QuestionKind
from assessment_engine.schemas.attempt import AnswerPayload

logger = logging.getLogger(__name__)


def ensure_within_time(attempt: Attempt, now: datetime, grace_minutes: int) -> None:
    """Reject answers after the assessment closes or the attempt runs out of time."""
    grace = timedelta(minutes=grace_minutes)
    assessment = attempt.assessment

    closes_at = as_utc(assessment.closes_at)
    if closes_at is not None and now >= closes_at + grace:
        raise NotOpen("Assessment is already closed")

    if assessment.max_duration_minutes:
        deadline = as_utc(attempt.started_at) + timedelta(minutes=assessment.max_duration_minutes)
        if now >= deadline + grace:
            raise AttemptTimeExpired()


def _validate_payload(question: Question, payload: AnswerPayload) -> list[int]:
    """Return the chosen option ids after checking them against the question."""
    kind = question.question_kind
    if kind != QuestionKind.SELECT:
        if payload.selected_option_ids or payload.selected_option_id is not None:
            raise InvalidAnswer("This question does not take options")
        return []

    option_ids = {opt.id for opt in question.options}
    chosen = list(dict.fromkeys(payload.selected_option_ids or []))
    unknown = [oid for oid in chosen if oid not in option_ids]
    if payload.selected_option_id is not None and payload.selected_option_id not in option_ids:
        unknown.append(payload.selected_option_id)
    if unknown:
        raise InvalidAnswer(f"Options {unknown} do not belong to question {question.id}")
    return chosen


def record_answer(
    db: Session,
    *,
    attempt: Attempt,
    payload: AnswerPayload,
    now: Optional[datetime] = None,
    grace_minutes: Optional[int] = None,
) -> Answer:
    """
    Insert or overwrite the answer to one question of an in-progress attempt.

    The whole payload is replaced, including the set of chosen options, and
    any grading information is cleared. Nothing is scored here.
    """
    now = now or utcnow()
    if grace_minutes is None:
        grace_minutes = settings.LATE_ANSWER_GRACE_MINUTES

    if attempt.state != AttemptState.IN_PROGRESS.value:
        raise AttemptNotActive()
    if payload.question_id not in attempt.question_ids:
        raise QuestionNotInAttempt()
    ensure_within_time(attempt, now, grace_minutes)

    question = db.get(Question, payload.question_id)
    chosen = _validate_payload(question, payload)

    answer = (
        db.query(Answer)
        .filter(Answer.attempt_id == attempt.id, Answer.question_id == question.id)
        .first()
    )
    if answer is None:
        answer = Answer(attempt_id=attempt.id, question_id=question.id)
        db.add(answer)

    answer.text_response = payload.text_response
    answer.selected_option_id = payload.selected_option_id
    answer.boolean_response = payload.boolean_response
    answer.justification = payload.justification
    if answer.selections:
        # old rows must be gone before re-inserting the same option ids
        answer.selections.clear()
        db.flush()
    answer.selections = [AnswerSelection(option_id=oid) for oid in chosen]
    answer.answered_at = now

    answer.obtained_weight = None
    answer.is_correct = None
    answer.feedback = None
    answer.graded_by = None
    answer.graded_at = None

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning(
            f"Concurrent save for attempt {attempt.id} question {question.id}"
        )
        raise Conflict("Answer was saved concurrently, send it again")
    db.refresh(answer)
    return answer


def get_answer(db: Session, *, attempt_id: int, answer_id: int) -> Answer:
    answer = (
        db.query(Answer)
        .filter(Answer.id == answer_id, Answer.attempt_id == attempt_id)
        .first()
    )
    if answer is None:
        raise AnswerNotFound()
    return answer
