"""Assessment management: create, patch, lock and delete."""
from datetime import timedelta
from decimal import Decimal

import pytest

from assessment_engine.core.clock import utcnow
from assessment_engine.core.errors import (
    AssessmentLocked,
    AssessmentNotFound,
    InvalidAssessment,
)
from assessment_engine.models.attempt import Attempt, AttemptState
from assessment_engine.schemas.assessment import AssessmentCreate, AssessmentUpdate
from assessment_engine.services import assessment_service

from .conftest import OTHER_ROOM_ID, ROOM_ID, STUDENT_ID, TEACHER_ID


def _add_attempt(db_session, assessment, state):
    attempt = Attempt(
        assessment_id=assessment.id,
        student_id=STUDENT_ID,
        attempt_number=1,
        state=state,
        total_weight=Decimal("1"),
        started_at=utcnow(),
    )
    db_session.add(attempt)
    db_session.commit()
    return attempt


class TestCreateAssessment:
    def test_defaults(self, db_session):
        assessment = assessment_service.create_assessment(
            db_session,
            creator_id=TEACHER_ID,
            obj_in=AssessmentCreate(room_id=ROOM_ID, title="Quiz"),
        )
        assert assessment.state == "draft"
        assert assessment.passing_mark == Decimal("6.0")
        assert assessment.allowed_attempts == 1
        assert assessment.questions_to_show == 10
        assert assessment.shuffle_questions is False
        assert assessment.reveal_answers is True
        assert assessment.created_by == TEACHER_ID

    def test_open_must_precede_close(self, db_session):
        now = utcnow()
        with pytest.raises(InvalidAssessment):
            assessment_service.create_assessment(
                db_session,
                creator_id=TEACHER_ID,
                obj_in=AssessmentCreate(
                    room_id=ROOM_ID, title="Quiz", opens_at=now, closes_at=now
                ),
            )


class TestUpdateAssessment:
    """Patches only touch the fields present in the request."""

    def test_absent_fields_are_untouched(self, db_session, make_assessment):
        assessment = make_assessment(description="keep me", allowed_attempts=3)

        updated = assessment_service.update_assessment(
            db_session, db_obj=assessment, obj_in=AssessmentUpdate(title="Renamed")
        )

        assert updated.title == "Renamed"
        assert updated.description == "keep me"
        assert updated.allowed_attempts == 3

    def test_explicit_null_clears_nullable_field(self, db_session, make_assessment):
        assessment = make_assessment(description="old")
        updated = assessment_service.update_assessment(
            db_session, db_obj=assessment, obj_in=AssessmentUpdate(description=None)
        )
        assert updated.description is None

    def test_required_field_cannot_be_cleared(self, db_session, make_assessment):
        assessment = make_assessment()
        with pytest.raises(InvalidAssessment):
            assessment_service.update_assessment(
                db_session, db_obj=assessment, obj_in=AssessmentUpdate(title=None)
            )

    def test_window_is_checked_against_stored_values(self, db_session, make_assessment):
        now = utcnow()
        assessment = make_assessment(opens_at=now, closes_at=now + timedelta(hours=2))
        with pytest.raises(InvalidAssessment):
            assessment_service.update_assessment(
                db_session,
                db_obj=assessment,
                obj_in=AssessmentUpdate(closes_at=now - timedelta(hours=1)),
            )

    def test_locked_after_submission(self, db_session, make_assessment):
        assessment = make_assessment()
        _add_attempt(db_session, assessment, AttemptState.SUBMITTED.value)

        with pytest.raises(AssessmentLocked):
            assessment_service.update_assessment(
                db_session, db_obj=assessment, obj_in=AssessmentUpdate(allowed_attempts=5)
            )

    def test_in_progress_attempts_do_not_lock(self, db_session, make_assessment):
        assessment = make_assessment()
        _add_attempt(db_session, assessment, AttemptState.IN_PROGRESS.value)

        updated = assessment_service.update_assessment(
            db_session, db_obj=assessment, obj_in=AssessmentUpdate(allowed_attempts=5)
        )
        assert updated.allowed_attempts == 5

    def test_state_change_is_allowed_while_locked(self, db_session, make_assessment):
        assessment = make_assessment()
        _add_attempt(db_session, assessment, AttemptState.GRADED.value)

        updated = assessment_service.update_assessment(
            db_session, db_obj=assessment, obj_in=AssessmentUpdate(state="closed")
        )
        assert updated.state == "closed"


class TestDeleteAndList:
    def test_delete(self, db_session, make_assessment):
        assessment = make_assessment()
        assessment_id = assessment.id

        assessment_service.delete_assessment(db_session, db_obj=assessment)

        with pytest.raises(AssessmentNotFound):
            assessment_service.get_assessment(db_session, assessment_id)

    def test_delete_is_blocked_when_locked(self, db_session, make_assessment):
        assessment = make_assessment()
        _add_attempt(db_session, assessment, AttemptState.SUBMITTED.value)
        with pytest.raises(AssessmentLocked):
            assessment_service.delete_assessment(db_session, db_obj=assessment)

    def test_students_only_see_published(self, db_session, make_assessment):
        published = make_assessment(title="Visible")
        make_assessment(title="Draft", state="draft")
        make_assessment(title="Elsewhere", room_id=OTHER_ROOM_ID)

        everything = assessment_service.list_assessments_for_room(db_session, room_id=ROOM_ID)
        visible = assessment_service.list_assessments_for_room(
            db_session, room_id=ROOM_ID, published_only=True
        )

        assert len(everything) == 2
        assert [a.id for a in visible] == [published.id]
