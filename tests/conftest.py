"""
Shared fixtures: an in-memory SQLite database per test and small factories
for assessments, questions and roster rows.
"""
from datetime import timedelta
from decimal import Decimal

import pytest

from assessment_engine.core.clock import utcnow
from assessment_engine.db.session import Database
from assessment_engine.models.assessment import Assessment, AssessmentState
from assessment_engine.models.membership import RoomMembership
from assessment_engine.models.question import Option, Question, QuestionKind
from assessment_engine.services.events import InMemoryEventSink

TEST_DATABASE_URL = "sqlite://"

ROOM_ID = 10
OTHER_ROOM_ID = 20
TEACHER_ID = 1
STUDENT_ID = 100
OTHER_STUDENT_ID = 101


@pytest.fixture(scope="function")
def database():
    """Fresh in-memory database with all tables."""
    db = Database(TEST_DATABASE_URL).open()
    db.create_all()
    try:
        yield db
    finally:
        db.drop_all()
        db.close()


@pytest.fixture
def db_session(database):
    session = database.session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def events():
    return InMemoryEventSink()


@pytest.fixture
def make_assessment(db_session):
    """Create a published assessment in ROOM_ID; keyword overrides any column."""

    def _make(**overrides):
        values = dict(
            room_id=ROOM_ID,
            created_by=TEACHER_ID,
            title="Unit 1 quiz",
            passing_mark=Decimal("6.0"),
            allowed_attempts=1,
            questions_to_show=10,
            shuffle_questions=False,
            reveal_answers=True,
            state=AssessmentState.PUBLISHED.value,
        )
        values.update(overrides)
        assessment = Assessment(**values)
        db_session.add(assessment)
        db_session.commit()
        db_session.refresh(assessment)
        return assessment

    return _make


@pytest.fixture
def make_select_question(db_session):
    """``options`` is a list of (text, is_correct) pairs."""

    def _make(assessment, *, options, weight="1.0", position=0, prompt="Pick the right ones"):
        question = Question(
            assessment_id=assessment.id,
            kind=QuestionKind.SELECT.value,
            prompt=prompt,
            weight=Decimal(weight),
            position=position,
            options=[
                Option(text=text, is_correct=correct, position=i)
                for i, (text, correct) in enumerate(options)
            ],
        )
        db_session.add(question)
        db_session.commit()
        db_session.refresh(question)
        return question

    return _make


@pytest.fixture
def make_boolean_question(db_session):
    def _make(assessment, *, key=True, weight="1.0", position=0, justified=False):
        kind = QuestionKind.BOOLEAN_JUSTIFIED if justified else QuestionKind.BOOLEAN
        question = Question(
            assessment_id=assessment.id,
            kind=kind.value,
            prompt="Water boils at 100C at sea level",
            weight=Decimal(weight),
            position=position,
            boolean_key=key,
        )
        db_session.add(question)
        db_session.commit()
        db_session.refresh(question)
        return question

    return _make


@pytest.fixture
def make_free_question(db_session):
    def _make(assessment, *, weight="1.0", position=0):
        question = Question(
            assessment_id=assessment.id,
            kind=QuestionKind.FREE_RESPONSE.value,
            prompt="Explain evaporation",
            weight=Decimal(weight),
            position=position,
        )
        db_session.add(question)
        db_session.commit()
        db_session.refresh(question)
        return question

    return _make


@pytest.fixture
def roster(db_session):
    """Teacher TEACHER_ID and students STUDENT_ID / OTHER_STUDENT_ID in ROOM_ID."""
    rows = [
        RoomMembership(room_id=ROOM_ID, user_id=TEACHER_ID, role="teacher", active=True),
        RoomMembership(room_id=ROOM_ID, user_id=STUDENT_ID, role="student", active=True),
        RoomMembership(room_id=ROOM_ID, user_id=OTHER_STUDENT_ID, role="student", active=True),
    ]
    db_session.add_all(rows)
    db_session.commit()
    return rows


@pytest.fixture
def window():
    """An open window around now: (opens_at, closes_at)."""
    now = utcnow()
    return now - timedelta(hours=1), now + timedelta(hours=1)
