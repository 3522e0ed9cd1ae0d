# assessment_engine/core/errors.py
"""
Error taxonomy for the attempt engine.

Every error raised by a service is an ``EngineError``. The API layer turns
them into JSON responses using ``status_code`` and ``code``; nothing here
knows about HTTP beyond the number.
"""


class EngineError(Exception):
    status_code: int = 500
    code: str = "ENGINE_ERROR"
    default_detail: str = "Unexpected engine error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


# --- NotFound ---------------------------------------------------------------

class NotFound(EngineError):
    status_code = 404
    code = "NOT_FOUND"
    default_detail = "Resource not found"


class AssessmentNotFound(NotFound):
    code = "ASSESSMENT_NOT_FOUND"
    default_detail = "Assessment not found"


class QuestionNotFound(NotFound):
    code = "QUESTION_NOT_FOUND"
    default_detail = "Question not found"


class AttemptNotFound(NotFound):
    code = "ATTEMPT_NOT_FOUND"
    default_detail = "Attempt not found"


class AnswerNotFound(NotFound):
    code = "ANSWER_NOT_FOUND"
    default_detail = "Answer not found"


# --- Forbidden --------------------------------------------------------------

class Forbidden(EngineError):
    status_code = 403
    code = "FORBIDDEN"
    default_detail = "Not allowed"


# --- InvalidState -----------------------------------------------------------

class InvalidState(EngineError):
    status_code = 400
    code = "INVALID_STATE"
    default_detail = "Operation not allowed in the current state"


class AttemptNotActive(InvalidState):
    code = "ATTEMPT_NOT_ACTIVE"
    default_detail = "Attempt is no longer in progress"


class AlreadySubmitted(InvalidState):
    code = "ALREADY_SUBMITTED"
    default_detail = "Attempt was already submitted"


class AttemptNotSubmitted(InvalidState):
    code = "ATTEMPT_NOT_SUBMITTED"
    default_detail = "Attempt is not awaiting manual grading"


class AttemptNotGraded(InvalidState):
    code = "ATTEMPT_NOT_GRADED"
    default_detail = "Attempt has not been graded yet"


class AssessmentLocked(InvalidState):
    code = "ASSESSMENT_LOCKED"
    default_detail = "Assessment already has submitted attempts"


class PendingManualGrades(InvalidState):
    code = "PENDING_MANUAL_GRADES"
    default_detail = "Some answers are still waiting for manual grading"


# --- PolicyViolation --------------------------------------------------------

class PolicyViolation(EngineError):
    status_code = 422
    code = "POLICY_VIOLATION"
    default_detail = "Request violates assessment policy"


class NotOpen(PolicyViolation):
    code = "NOT_OPEN"
    default_detail = "Assessment is not open"


class NotPublished(PolicyViolation):
    code = "NOT_PUBLISHED"
    default_detail = "Assessment is not available"


class AttemptsExhausted(PolicyViolation):
    code = "ATTEMPTS_EXHAUSTED"
    default_detail = "All allowed attempts have been used"


class NoQuestionsAvailable(PolicyViolation):
    code = "NO_QUESTIONS_AVAILABLE"
    default_detail = "Assessment has no questions"


class ScoreExceedsMaxWeight(PolicyViolation):
    code = "SCORE_EXCEEDS_MAX_WEIGHT"
    default_detail = "Score is greater than the question weight"


class NegativeScore(PolicyViolation):
    code = "NEGATIVE_SCORE"
    default_detail = "Score cannot be negative"


class QuestionNotInAttempt(PolicyViolation):
    code = "QUESTION_NOT_IN_ATTEMPT"
    default_detail = "Question does not belong to this attempt"


class AttemptTimeExpired(PolicyViolation):
    code = "ATTEMPT_TIME_EXPIRED"
    default_detail = "Time allowed for this attempt is over"


class InvalidAnswer(PolicyViolation):
    code = "INVALID_ANSWER"
    default_detail = "Answer payload does not match the question"


class InvalidQuestion(PolicyViolation):
    code = "INVALID_QUESTION"
    default_detail = "Question definition is invalid"


class InvalidAssessment(PolicyViolation):
    code = "INVALID_ASSESSMENT"
    default_detail = "Assessment definition is invalid"


# --- Conflict ---------------------------------------------------------------

class Conflict(EngineError):
    status_code = 409
    code = "CONFLICT"
    default_detail = "Concurrent attempt creation could not be resolved"
