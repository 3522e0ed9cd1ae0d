# assessment_engine/models/attempt.py
import enum

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship

from assessment_engine.db.base import Base


class AttemptState(str, enum.Enum):
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    GRADED = "graded"
    PUBLISHED = "published"


class Attempt(Base):
    __tablename__ = "attempts"
    __table_args__ = (
        UniqueConstraint(
            "assessment_id", "student_id", "attempt_number",
            name="uq_attempt_number",
        ),
        # at most one in-progress attempt per (assessment, student)
        Index(
            "uq_attempt_in_progress",
            "assessment_id",
            "student_id",
            unique=True,
            sqlite_where=text("state = 'in_progress'"),
            postgresql_where=text("state = 'in_progress'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    assessment_id = Column(
        Integer,
        ForeignKey("assessments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    student_id = Column(Integer, nullable=False, index=True)
    attempt_number = Column(Integer, nullable=False)

    # in_progress / submitted / graded / published
    state = Column(String(20), nullable=False, default=AttemptState.IN_PROGRESS.value, index=True)

    # frozen at creation
    total_weight = Column(Numeric(10, 4), nullable=False)
    selection_seed = Column(Integer, nullable=True)

    obtained_weight = Column(Numeric(10, 4), nullable=True)
    mark = Column(Numeric(5, 2), nullable=True)
    time_used_minutes = Column(Integer, nullable=True)

    started_at = Column(DateTime(timezone=True), nullable=False)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    graded_at = Column(DateTime(timezone=True), nullable=True)
    published_at = Column(DateTime(timezone=True), nullable=True)

    assessment = relationship("Assessment", back_populates="attempts")
    questions = relationship(
        "AttemptQuestion",
        back_populates="attempt",
        cascade="all, delete-orphan",
        order_by="AttemptQuestion.display_order",
    )
    answers = relationship(
        "Answer",
        back_populates="attempt",
        cascade="all, delete-orphan",
    )

    @property
    def question_ids(self) -> list[int]:
        return [aq.question_id for aq in self.questions]


class AttemptQuestion(Base):
    """One row of an attempt's frozen question snapshot."""

    __tablename__ = "attempt_questions"
    __table_args__ = (
        UniqueConstraint("attempt_id", "question_id", name="uq_attempt_question"),
    )

    id = Column(Integer, primary_key=True)
    attempt_id = Column(
        Integer,
        ForeignKey("attempts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    question_id = Column(Integer, ForeignKey("questions.id"), nullable=False, index=True)
    display_order = Column(Integer, nullable=False)
    weight = Column(Numeric(8, 2), nullable=False)

    attempt = relationship("Attempt", back_populates="questions")
    question = relationship("Question")
