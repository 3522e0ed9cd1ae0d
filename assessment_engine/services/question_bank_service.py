# assessment_engine/services/question_bank_service.py
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from assessment_engine.core.errors import (
    AssessmentLocked,
    InvalidQuestion,
    QuestionNotFound,
)
from assessment_engine.models.assessment import Assessment
from assessment_engine.models.attempt import AttemptQuestion
from assessment_engine.models.question import Option, Question, QuestionKind
from assessment_engine.schemas.question import (
    OptionCreate,
    QuestionCreate,
    QuestionPosition,
    QuestionUpdate,
)
from assessment_engine.services.assessment_service import ensure_unlocked

logger = logging.getLogger(__name__)


def _validate_key(
    kind: QuestionKind,
    options: List[OptionCreate],
    boolean_key: Optional[bool],
) -> None:
    if kind == QuestionKind.SELECT:
        if len(options) < 2:
            raise InvalidQuestion("Select questions need at least 2 options")
        if not any(opt.is_correct for opt in options):
            raise InvalidQuestion("At least one option must be correct")
    if kind.has_boolean_key and boolean_key is None:
        raise InvalidQuestion("Boolean questions need an answer key (true or false)")


def _ensure_not_drawn(db: Session, question: Question, detail: str) -> None:
    drawn = (
        db.query(AttemptQuestion.id)
        .filter(AttemptQuestion.question_id == question.id)
        .first()
    )
    if drawn is not None:
        logger.warning(f"Rejected change to question {question.id} already drawn into an attempt")
        raise AssessmentLocked(detail)


def _build_options(options: List[OptionCreate]) -> List[Option]:
    return [
        Option(text=opt.text, is_correct=opt.is_correct, position=opt.position)
        for opt in options
    ]


def create_question(
    db: Session,
    *,
    assessment: Assessment,
    obj_in: QuestionCreate,
) -> Question:
    """
    teacher adds a question to the bank
    """
    ensure_unlocked(db, assessment.id)
    kind = QuestionKind(obj_in.kind)
    _validate_key(kind, obj_in.options, obj_in.boolean_key)

    db_obj = Question(
        assessment_id=assessment.id,
        kind=kind.value,
        prompt=obj_in.prompt,
        weight=obj_in.weight,
        position=obj_in.position,
        boolean_key=obj_in.boolean_key if kind.has_boolean_key else None,
        options=_build_options(obj_in.options) if kind == QuestionKind.SELECT else [],
    )
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj


def get_question(db: Session, question_id: int) -> Question:
    question = db.get(Question, question_id)
    if question is None:
        raise QuestionNotFound()
    return question


def list_questions(db: Session, *, assessment_id: int) -> List[Question]:
    """
    the whole bank in authored order
    """
    return (
        db.query(Question)
        .filter(Question.assessment_id == assessment_id)
        .order_by(Question.position.asc(), Question.id.asc())
        .all()
    )


def update_question(
    db: Session,
    *,
    db_obj: Question,
    obj_in: QuestionUpdate,
) -> Question:
    """
    teacher edits a question; a given option list replaces the old one
    """
    ensure_unlocked(db, db_obj.assessment_id)
    kind = db_obj.question_kind
    update_data = obj_in.model_dump(exclude_unset=True)

    key_fields = update_data.keys() & {"options", "boolean_key"}
    if "options" in key_fields and kind != QuestionKind.SELECT:
        raise InvalidQuestion(f"{kind.value} questions have no options")
    if "boolean_key" in key_fields and not kind.has_boolean_key:
        raise InvalidQuestion(f"{kind.value} questions have no boolean key")
    if key_fields:
        # saved selections point at option ids and grading reads the live key
        _ensure_not_drawn(db, db_obj, "Answer key of a question in an attempt cannot change")
    if "options" in key_fields:
        _validate_key(kind, obj_in.options or [], None)
    if "boolean_key" in key_fields:
        _validate_key(kind, [], obj_in.boolean_key)

    for field in ("prompt", "weight", "position"):
        if field in update_data:
            if update_data[field] is None:
                raise InvalidQuestion(f"{field} cannot be cleared")
            setattr(db_obj, field, update_data[field])

    if "options" in key_fields:
        db_obj.options = _build_options(obj_in.options)
    if "boolean_key" in key_fields:
        db_obj.boolean_key = obj_in.boolean_key

    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj


def delete_question(db: Session, *, db_obj: Question) -> None:
    ensure_unlocked(db, db_obj.assessment_id)
    # in-progress snapshots must keep resolving to their questions
    _ensure_not_drawn(db, db_obj, "Question is part of an attempt in progress")
    db.delete(db_obj)
    db.commit()


def reorder_questions(
    db: Session,
    *,
    assessment: Assessment,
    items: List[QuestionPosition],
) -> List[Question]:
    """
    Set new positions for several questions in one transaction.
    """
    ensure_unlocked(db, assessment.id)
    by_id = {q.id: q for q in list_questions(db, assessment_id=assessment.id)}

    missing = [item.question_id for item in items if item.question_id not in by_id]
    if missing:
        raise QuestionNotFound(f"Questions not in this assessment: {missing}")

    for item in items:
        by_id[item.question_id].position = item.position
    db.commit()
    logger.info(f"Reordered {len(items)} questions of assessment {assessment.id}")
    return list_questions(db, assessment_id=assessment.id)
