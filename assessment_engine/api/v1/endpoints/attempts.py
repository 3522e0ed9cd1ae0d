# assessment_engine/api/v1/endpoints/attempts.py
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from assessment_engine.core.errors import Forbidden
from assessment_engine.core.security import (
    ActingRole,
    Actor,
    get_current_actor,
    get_current_student,
    get_current_teacher,
)
from assessment_engine.db.deps import get_db, get_event_sink, get_membership
from assessment_engine.models.attempt import Attempt
from assessment_engine.schemas.attempt import (
    AnswerPayload,
    AnswerPublic,
    AttemptDetail,
    AttemptPublic,
    AttemptStart,
    AttemptStarted,
    GradeAnswerIn,
    PublishResult,
    SubmitResult,
)
from assessment_engine.services import (
    answer_service,
    assessment_service,
    attempt_service,
)
from assessment_engine.services.events import EventSink
from assessment_engine.services.membership import MembershipChecker, ensure_room_access

router = APIRouter(prefix="/attempts", tags=["attempts"])


def _get_own_attempt(db: Session, student: Actor, attempt_id: int, *, for_update: bool = False) -> Attempt:
    attempt = attempt_service.get_attempt(db, attempt_id, for_update=for_update)
    if attempt.student_id != student.user_id:
        raise Forbidden("This attempt belongs to another student")
    return attempt


def _get_room_attempt(
    db: Session,
    membership: MembershipChecker,
    teacher: Actor,
    attempt_id: int,
    *,
    for_update: bool = False,
) -> Attempt:
    attempt = attempt_service.get_attempt(db, attempt_id, for_update=for_update)
    ensure_room_access(membership, teacher, attempt.assessment.room_id)
    return attempt


@router.post("/", response_model=AttemptStarted, status_code=status.HTTP_201_CREATED)
def start_attempt(
    obj_in: AttemptStart,
    response: Response,
    db: Session = Depends(get_db),
    membership: MembershipChecker = Depends(get_membership),
    current_student: Actor = Depends(get_current_student),
):
    """
    Student starts an attempt. An attempt already in progress is returned
    with 200 instead of creating a new one.
    """
    assessment = assessment_service.get_assessment(db, obj_in.assessment_id)
    ensure_room_access(membership, current_student, assessment.room_id)

    attempt, created = attempt_service.start_attempt(
        db, assessment=assessment, student_id=current_student.user_id
    )
    if not created:
        response.status_code = status.HTTP_200_OK

    return AttemptStarted(
        attempt_id=attempt.id,
        attempt_number=attempt.attempt_number,
        total_weight=attempt.total_weight,
        started_at=attempt.started_at,
        max_duration_minutes=assessment.max_duration_minutes,
        closes_at=assessment.closes_at,
        resumed=not created,
    )


@router.get("/{attempt_id}", response_model=AttemptDetail)
def get_attempt(
    attempt_id: int,
    db: Session = Depends(get_db),
    membership: MembershipChecker = Depends(get_membership),
    actor: Actor = Depends(get_current_actor),
):
    """
    Students can only open their own attempts; teachers any attempt in their
    rooms. The answer key follows the assessment's reveal setting.
    """
    if actor.role == ActingRole.STUDENT:
        attempt = _get_own_attempt(db, actor, attempt_id)
    else:
        attempt = _get_room_attempt(db, membership, actor, attempt_id)
    return attempt_service.build_attempt_view(db, attempt=attempt)


@router.put("/{attempt_id}/answers", response_model=AnswerPublic)
def save_answer(
    attempt_id: int,
    obj_in: AnswerPayload,
    db: Session = Depends(get_db),
    membership: MembershipChecker = Depends(get_membership),
    current_student: Actor = Depends(get_current_student),
):
    attempt = _get_own_attempt(db, current_student, attempt_id)
    ensure_room_access(membership, current_student, attempt.assessment.room_id)
    answer = answer_service.record_answer(db, attempt=attempt, payload=obj_in)
    return answer


@router.post("/{attempt_id}/submit", response_model=SubmitResult)
def submit_attempt(
    attempt_id: int,
    db: Session = Depends(get_db),
    membership: MembershipChecker = Depends(get_membership),
    events: EventSink = Depends(get_event_sink),
    current_student: Actor = Depends(get_current_student),
):
    attempt = _get_own_attempt(db, current_student, attempt_id, for_update=True)
    ensure_room_access(membership, current_student, attempt.assessment.room_id)
    return attempt_service.submit_attempt(db, attempt=attempt, events=events)


@router.get("/{attempt_id}/grading", response_model=AttemptDetail)
def get_attempt_for_grading(
    attempt_id: int,
    db: Session = Depends(get_db),
    membership: MembershipChecker = Depends(get_membership),
    current_teacher: Actor = Depends(get_current_teacher),
):
    """
    Teacher view with the full answer key next to the student's answers.
    """
    attempt = _get_room_attempt(db, membership, current_teacher, attempt_id)
    return attempt_service.build_attempt_view(db, attempt=attempt, grading_view=True)


@router.put("/{attempt_id}/answers/{answer_id}/grade", response_model=AnswerPublic)
def grade_answer(
    attempt_id: int,
    answer_id: int,
    obj_in: GradeAnswerIn,
    db: Session = Depends(get_db),
    membership: MembershipChecker = Depends(get_membership),
    current_teacher: Actor = Depends(get_current_teacher),
):
    attempt = _get_room_attempt(db, membership, current_teacher, attempt_id, for_update=True)
    return attempt_service.grade_answer(
        db,
        attempt=attempt,
        answer_id=answer_id,
        obtained_weight=obj_in.obtained_weight,
        feedback=obj_in.feedback,
        grader_id=current_teacher.user_id,
    )


@router.post("/{attempt_id}/publish", response_model=PublishResult)
def publish_results(
    attempt_id: int,
    db: Session = Depends(get_db),
    membership: MembershipChecker = Depends(get_membership),
    events: EventSink = Depends(get_event_sink),
    current_teacher: Actor = Depends(get_current_teacher),
):
    """
    Finish manual grading: the attempt gets its final mark.
    """
    attempt = _get_room_attempt(db, membership, current_teacher, attempt_id, for_update=True)
    return attempt_service.publish_results(db, attempt=attempt, events=events)


@router.post("/{attempt_id}/release", response_model=AttemptPublic)
def release_results(
    attempt_id: int,
    db: Session = Depends(get_db),
    membership: MembershipChecker = Depends(get_membership),
    events: EventSink = Depends(get_event_sink),
    current_teacher: Actor = Depends(get_current_teacher),
):
    attempt = _get_room_attempt(db, membership, current_teacher, attempt_id, for_update=True)
    return attempt_service.release_results(db, attempt=attempt, events=events)
