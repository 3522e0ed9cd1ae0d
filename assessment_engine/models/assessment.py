# assessment_engine/models/assessment.py
import enum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from assessment_engine.db.base import Base


class AssessmentState(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    CLOSED = "closed"


class Assessment(Base):
    __tablename__ = "assessments"

    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(Integer, nullable=False, index=True)
    section_id = Column(Integer, nullable=True)  # optional content section
    created_by = Column(Integer, nullable=False)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    passing_mark = Column(Numeric(4, 2), nullable=False, default=6)
    opens_at = Column(DateTime(timezone=True), nullable=True)
    closes_at = Column(DateTime(timezone=True), nullable=True)
    max_duration_minutes = Column(Integer, nullable=True)
    allowed_attempts = Column(Integer, nullable=False, default=1)
    questions_to_show = Column(Integer, nullable=False, default=10)
    shuffle_questions = Column(Boolean, nullable=False, default=False)
    reveal_answers = Column(Boolean, nullable=False, default=True)

    # draft / published / closed
    state = Column(String(20), nullable=False, default=AssessmentState.DRAFT.value, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    questions = relationship(
        "Question",
        back_populates="assessment",
        cascade="all, delete-orphan",
        order_by="[Question.position, Question.id]",
    )
    attempts = relationship(
        "Attempt",
        back_populates="assessment",
        cascade="all, delete-orphan",
    )
