# assessment_engine/models/answer.py
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from assessment_engine.db.base import Base


class Answer(Base):
    __tablename__ = "answers"
    __table_args__ = (
        UniqueConstraint("attempt_id", "question_id", name="uq_answer_attempt_question"),
    )

    id = Column(Integer, primary_key=True, index=True)
    attempt_id = Column(
        Integer,
        ForeignKey("attempts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    question_id = Column(Integer, ForeignKey("questions.id"), nullable=False, index=True)

    # payload, filled according to the question kind
    text_response = Column(Text, nullable=True)
    selected_option_id = Column(Integer, nullable=True)  # legacy single choice
    boolean_response = Column(Boolean, nullable=True)
    justification = Column(Text, nullable=True)
    answered_at = Column(DateTime(timezone=True), nullable=True)

    # grading
    obtained_weight = Column(Numeric(10, 4), nullable=True)
    is_correct = Column(Boolean, nullable=True)
    feedback = Column(Text, nullable=True)
    graded_by = Column(Integer, nullable=True)
    graded_at = Column(DateTime(timezone=True), nullable=True)

    attempt = relationship("Attempt", back_populates="answers")
    question = relationship("Question")
    selections = relationship(
        "AnswerSelection",
        back_populates="answer",
        cascade="all, delete-orphan",
    )

    @property
    def selected_option_ids(self) -> list[int]:
        return sorted(sel.option_id for sel in self.selections)


class AnswerSelection(Base):
    __tablename__ = "answer_selections"
    __table_args__ = (
        UniqueConstraint("answer_id", "option_id", name="uq_answer_selection"),
    )

    id = Column(Integer, primary_key=True)
    answer_id = Column(
        Integer,
        ForeignKey("answers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    option_id = Column(Integer, nullable=False)

    answer = relationship("Answer", back_populates="selections")
