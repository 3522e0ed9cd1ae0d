# assessment_engine/services/assessment_service.py
import logging
from typing import List

from sqlalchemy.orm import Session

from assessment_engine.core.clock import as_utc
from assessment_engine.core.errors import (
    AssessmentLocked,
    AssessmentNotFound,
    InvalidAssessment,
)
from assessment_engine.models.assessment import Assessment, AssessmentState
from assessment_engine.models.attempt import Attempt, AttemptState
from assessment_engine.schemas.assessment import AssessmentCreate, AssessmentUpdate

logger = logging.getLogger(__name__)

# fields that may still change once attempts have been handed in
_LOCK_EXEMPT_FIELDS = {"state"}
_NOT_NULL_FIELDS = {
    "title",
    "passing_mark",
    "allowed_attempts",
    "questions_to_show",
    "shuffle_questions",
    "reveal_answers",
    "state",
}


def _validate_window(opens_at, closes_at) -> None:
    opens_at, closes_at = as_utc(opens_at), as_utc(closes_at)
    if opens_at is not None and closes_at is not None and opens_at >= closes_at:
        raise InvalidAssessment("Open time must be earlier than close time")


def has_locking_attempts(db: Session, assessment_id: int) -> bool:
    """True once any attempt of the assessment has left ``in_progress``."""
    return (
        db.query(Attempt.id)
        .filter(
            Attempt.assessment_id == assessment_id,
            Attempt.state != AttemptState.IN_PROGRESS.value,
        )
        .first()
        is not None
    )


def ensure_unlocked(db: Session, assessment_id: int) -> None:
    if has_locking_attempts(db, assessment_id):
        logger.warning(f"Rejected change to locked assessment {assessment_id}")
        raise AssessmentLocked()


def create_assessment(
    db: Session,
    *,
    creator_id: int,
    obj_in: AssessmentCreate,
) -> Assessment:
    _validate_window(obj_in.opens_at, obj_in.closes_at)

    db_obj = Assessment(
        created_by=creator_id,
        state=AssessmentState.DRAFT.value,
        **obj_in.model_dump(),
    )
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    logger.info(f"Assessment {db_obj.id} created in room {db_obj.room_id}")
    return db_obj


def get_assessment(db: Session, assessment_id: int) -> Assessment:
    assessment = db.get(Assessment, assessment_id)
    if assessment is None:
        raise AssessmentNotFound()
    return assessment


def list_assessments_for_room(
    db: Session,
    *,
    room_id: int,
    published_only: bool = False,
    skip: int = 0,
    limit: int = 100,
) -> List[Assessment]:
    """
    Assessments of a room, newest first. Students only get published ones.
    """
    query = db.query(Assessment).filter(Assessment.room_id == room_id)
    if published_only:
        query = query.filter(Assessment.state == AssessmentState.PUBLISHED.value)
    return (
        query.order_by(Assessment.created_at.desc(), Assessment.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def update_assessment(
    db: Session,
    *,
    db_obj: Assessment,
    obj_in: AssessmentUpdate,
) -> Assessment:
    """
    Apply a patch. Only fields sent by the caller are touched; everything but
    the lifecycle state is frozen once attempts have been handed in.
    """
    update_data = obj_in.model_dump(exclude_unset=True)
    if set(update_data) - _LOCK_EXEMPT_FIELDS:
        ensure_unlocked(db, db_obj.id)

    cleared = sorted(f for f in _NOT_NULL_FIELDS if f in update_data and update_data[f] is None)
    if cleared:
        raise InvalidAssessment(f"Fields cannot be cleared: {', '.join(cleared)}")

    if "state" in update_data:
        update_data["state"] = AssessmentState(update_data["state"]).value

    _validate_window(
        update_data.get("opens_at", db_obj.opens_at),
        update_data.get("closes_at", db_obj.closes_at),
    )

    for field, value in update_data.items():
        setattr(db_obj, field, value)
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj


def delete_assessment(db: Session, *, db_obj: Assessment) -> None:
    assessment_id = db_obj.id
    ensure_unlocked(db, assessment_id)
    db.delete(db_obj)
    db.commit()
    logger.info(f"Assessment {assessment_id} deleted")
