# assessment_engine/models/question.py
import enum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from assessment_engine.db.base import Base


class QuestionKind(str, enum.Enum):
    SELECT = "select"                       # single or multi select
    BOOLEAN = "boolean"
    BOOLEAN_JUSTIFIED = "boolean_justified"
    FREE_RESPONSE = "free_response"

    @property
    def is_manual(self) -> bool:
        return self in (QuestionKind.BOOLEAN_JUSTIFIED, QuestionKind.FREE_RESPONSE)

    @property
    def has_boolean_key(self) -> bool:
        return self in (QuestionKind.BOOLEAN, QuestionKind.BOOLEAN_JUSTIFIED)


MANUAL_KINDS = (QuestionKind.BOOLEAN_JUSTIFIED.value, QuestionKind.FREE_RESPONSE.value)


class Question(Base):
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    assessment_id = Column(
        Integer,
        ForeignKey("assessments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    kind = Column(String(30), nullable=False)
    prompt = Column(Text, nullable=False)
    weight = Column(Numeric(8, 2), nullable=False, default=1)
    position = Column(Integer, nullable=False, default=0)

    # answer key for boolean kinds; unused otherwise
    boolean_key = Column(Boolean, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    assessment = relationship("Assessment", back_populates="questions")
    options = relationship(
        "Option",
        back_populates="question",
        cascade="all, delete-orphan",
        order_by="[Option.position, Option.id]",
    )

    @property
    def question_kind(self) -> QuestionKind:
        return QuestionKind(self.kind)

    @property
    def correct_option_ids(self) -> set[int]:
        return {opt.id for opt in self.options if opt.is_correct}


class Option(Base):
    __tablename__ = "question_options"

    id = Column(Integer, primary_key=True, index=True)
    question_id = Column(
        Integer,
        ForeignKey("questions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    text = Column(Text, nullable=False)
    is_correct = Column(Boolean, nullable=False, default=False)
    position = Column(Integer, nullable=False, default=0)

    question = relationship("Question", back_populates="options")
