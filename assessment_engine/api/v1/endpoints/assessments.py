# assessment_engine/api/v1/endpoints/assessments.py
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from assessment_engine.core.errors import AssessmentNotFound
from assessment_engine.core.security import (
    ActingRole,
    Actor,
    get_current_actor,
    get_current_student,
    get_current_teacher,
)
from assessment_engine.db.deps import get_db, get_membership
from assessment_engine.models.assessment import AssessmentState
from assessment_engine.schemas.assessment import (
    AssessmentCreate,
    AssessmentPublic,
    AssessmentUpdate,
)
from assessment_engine.schemas.attempt import AttemptPublic
from assessment_engine.schemas.statistics import AssessmentStatistics
from assessment_engine.services import (
    assessment_service,
    attempt_service,
    statistics_service,
)
from assessment_engine.services.membership import MembershipChecker, ensure_room_access

router = APIRouter(prefix="/assessments", tags=["assessments"])


@router.post("/", response_model=AssessmentPublic, status_code=status.HTTP_201_CREATED)
def create_assessment(
    obj_in: AssessmentCreate,
    db: Session = Depends(get_db),
    membership: MembershipChecker = Depends(get_membership),
    current_teacher: Actor = Depends(get_current_teacher),
):
    """
    Teacher creates a draft assessment in one of their rooms.
    """
    ensure_room_access(membership, current_teacher, obj_in.room_id)
    return assessment_service.create_assessment(
        db, creator_id=current_teacher.user_id, obj_in=obj_in
    )


@router.get("/room/{room_id}", response_model=List[AssessmentPublic])
def list_room_assessments(
    room_id: int,
    db: Session = Depends(get_db),
    membership: MembershipChecker = Depends(get_membership),
    actor: Actor = Depends(get_current_actor),
    skip: int = 0,
    limit: int = 100,
):
    ensure_room_access(membership, actor, room_id)
    return assessment_service.list_assessments_for_room(
        db,
        room_id=room_id,
        published_only=actor.role == ActingRole.STUDENT,
        skip=skip,
        limit=limit,
    )


@router.get("/{assessment_id}", response_model=AssessmentPublic)
def get_assessment(
    assessment_id: int,
    db: Session = Depends(get_db),
    membership: MembershipChecker = Depends(get_membership),
    actor: Actor = Depends(get_current_actor),
):
    assessment = assessment_service.get_assessment(db, assessment_id)
    ensure_room_access(membership, actor, assessment.room_id)
    # drafts are invisible to students
    if actor.role == ActingRole.STUDENT and assessment.state != AssessmentState.PUBLISHED.value:
        raise AssessmentNotFound()
    return assessment


@router.patch("/{assessment_id}", response_model=AssessmentPublic)
def update_assessment(
    assessment_id: int,
    obj_in: AssessmentUpdate,
    db: Session = Depends(get_db),
    membership: MembershipChecker = Depends(get_membership),
    current_teacher: Actor = Depends(get_current_teacher),
):
    assessment = assessment_service.get_assessment(db, assessment_id)
    ensure_room_access(membership, current_teacher, assessment.room_id)
    return assessment_service.update_assessment(db, db_obj=assessment, obj_in=obj_in)


@router.delete("/{assessment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_assessment(
    assessment_id: int,
    db: Session = Depends(get_db),
    membership: MembershipChecker = Depends(get_membership),
    current_teacher: Actor = Depends(get_current_teacher),
):
    assessment = assessment_service.get_assessment(db, assessment_id)
    ensure_room_access(membership, current_teacher, assessment.room_id)
    assessment_service.delete_assessment(db, db_obj=assessment)


@router.get("/{assessment_id}/statistics", response_model=AssessmentStatistics)
def get_statistics(
    assessment_id: int,
    db: Session = Depends(get_db),
    membership: MembershipChecker = Depends(get_membership),
    current_teacher: Actor = Depends(get_current_teacher),
):
    assessment = assessment_service.get_assessment(db, assessment_id)
    ensure_room_access(membership, current_teacher, assessment.room_id)
    return statistics_service.assessment_statistics(db, assessment=assessment)


@router.get("/{assessment_id}/attempts/me", response_model=List[AttemptPublic])
def list_my_attempts(
    assessment_id: int,
    db: Session = Depends(get_db),
    current_student: Actor = Depends(get_current_student),
):
    """
    Student sees their own attempts, newest first.
    """
    assessment_service.get_assessment(db, assessment_id)
    return attempt_service.list_attempts_for_student(
        db, assessment_id=assessment_id, student_id=current_student.user_id
    )


@router.get("/{assessment_id}/attempts", response_model=List[AttemptPublic])
def list_attempts_for_review(
    assessment_id: int,
    db: Session = Depends(get_db),
    membership: MembershipChecker = Depends(get_membership),
    current_teacher: Actor = Depends(get_current_teacher),
    pending_only: bool = False,
    skip: int = 0,
    limit: int = 100,
):
    """
    Teacher sees handed-in attempts; ``pending_only`` keeps the ones still
    waiting for manual grading.
    """
    assessment = assessment_service.get_assessment(db, assessment_id)
    ensure_room_access(membership, current_teacher, assessment.room_id)
    return attempt_service.list_attempts_for_review(
        db,
        assessment_id=assessment_id,
        pending_only=pending_only,
        skip=skip,
        limit=limit,
    )
