# assessment_engine/models/__init__.py
from assessment_engine.models.assessment import Assessment, AssessmentState  # noqa
from assessment_engine.models.question import Question, Option, QuestionKind  # noqa
from assessment_engine.models.attempt import Attempt, AttemptQuestion, AttemptState  # noqa
from assessment_engine.models.answer import Answer, AnswerSelection  # noqa
from assessment_engine.models.membership import RoomMembership  # noqa
