# assessment_engine/services/attempt_service.py
"""
Attempt lifecycle: start -> in_progress -> submitted -> graded -> published.

Every transition is committed as one unit; domain events go out only after
the commit succeeded.
"""
from __future__ import annotations

import logging
import math
import random
import secrets
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from assessment_engine.core.clock import as_utc, utcnow
from assessment_engine.core.errors import (
    AlreadySubmitted,
    AttemptNotFound,
    AttemptNotGraded,
    AttemptNotSubmitted,
    Conflict,
    NegativeScore,
    PendingManualGrades,
    ScoreExceedsMaxWeight,
)
from assessment_engine.models.answer import Answer
from assessment_engine.models.assessment import Assessment
from assessment_engine.models.attempt import Attempt, AttemptQuestion, AttemptState
from assessment_engine.models.question import MANUAL_KINDS, Question, QuestionKind
from assessment_engine.schemas.attempt import (
    AnswerPublic,
    AttemptDetail,
    AttemptPublic,
    AttemptQuestionView,
    OptionView,
    PublishResult,
    SubmitResult,
)
from assessment_engine.services import question_bank_service
from assessment_engine.services.answer_service import get_answer
from assessment_engine.services.assembler import assemble, check_availability
from assessment_engine.services.events import (
    AttemptGraded,
    AttemptResultsReleased,
    AttemptSubmitted,
    EventSink,
)
from assessment_engine.services.grading import (
    compute_mark,
    grade_objective,
    quantize_weight,
    sum_obtained,
    to_decimal,
)

logger = logging.getLogger(__name__)

_RESULT_STATES = (AttemptState.GRADED.value, AttemptState.PUBLISHED.value)


def get_attempt(db: Session, attempt_id: int, *, for_update: bool = False) -> Attempt:
    query = db.query(Attempt).filter(Attempt.id == attempt_id)
    if for_update:
        query = query.with_for_update()
    attempt = query.first()
    if attempt is None:
        raise AttemptNotFound()
    return attempt


def _find_in_progress_attempt(
    db: Session,
    assessment_id: int,
    student_id: int,
) -> Optional[Attempt]:
    return (
        db.query(Attempt)
        .filter(
            Attempt.assessment_id == assessment_id,
            Attempt.student_id == student_id,
            Attempt.state == AttemptState.IN_PROGRESS.value,
        )
        .order_by(Attempt.started_at.desc())
        .first()
    )


def count_attempts(db: Session, assessment_id: int, student_id: int) -> int:
    return (
        db.query(Attempt)
        .filter(Attempt.assessment_id == assessment_id, Attempt.student_id == student_id)
        .count()
    )


def start_attempt(
    db: Session,
    *,
    assessment: Assessment,
    student_id: int,
    now: Optional[datetime] = None,
) -> tuple[Attempt, bool]:
    """
    Start (or resume) the student's attempt.

    Returns ``(attempt, created)``. An attempt already in progress is handed
    back instead of creating a second one; the same happens when a concurrent
    request wins the insert race.
    """
    now = now or utcnow()
    check_availability(assessment, now)

    existing = _find_in_progress_attempt(db, assessment.id, student_id)
    if existing is not None:
        logger.info(f"Resuming attempt {existing.id} for student {student_id}")
        return existing, False

    assessment_id = assessment.id
    prior = count_attempts(db, assessment_id, student_id)
    seed = secrets.randbits(31)
    selection = assemble(
        assessment,
        question_bank_service.list_questions(db, assessment_id=assessment_id),
        prior,
        now=now,
        rng=random.Random(seed),
    )

    attempt = Attempt(
        assessment_id=assessment_id,
        student_id=student_id,
        attempt_number=prior + 1,
        state=AttemptState.IN_PROGRESS.value,
        total_weight=selection.total_weight,
        selection_seed=seed,
        started_at=now,
    )
    attempt.questions = [
        AttemptQuestion(question_id=qid, display_order=order, weight=weight)
        for order, (qid, weight) in enumerate(zip(selection.question_ids, selection.weights))
    ]
    db.add(attempt)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        existing = _find_in_progress_attempt(db, assessment_id, student_id)
        if existing is None:
            logger.warning(
                f"Attempt insert for student {student_id} on assessment {assessment_id} "
                f"collided without a surviving in-progress attempt"
            )
            raise Conflict()
        logger.warning(
            f"Duplicate start for student {student_id} on assessment {assessment_id}, "
            f"returning attempt {existing.id}"
        )
        return existing, False

    db.refresh(attempt)
    logger.info(
        f"Attempt {attempt.id} (#{attempt.attempt_number}) started for student {student_id} "
        f"with {len(selection.question_ids)} questions"
    )
    return attempt, True


def _load_questions(db: Session, attempt: Attempt) -> dict[int, Question]:
    ids = attempt.question_ids
    if not ids:
        return {}
    return {q.id: q for q in db.query(Question).filter(Question.id.in_(ids)).all()}


def _snapshot_weight(attempt: Attempt, question_id: int) -> Decimal:
    for item in attempt.questions:
        if item.question_id == question_id:
            return to_decimal(item.weight)
    return Decimal("0")


def _emit(events: Optional[EventSink], *items) -> None:
    if events is None:
        return
    for event in items:
        events.emit(event)


def submit_attempt(
    db: Session,
    *,
    attempt: Attempt,
    events: Optional[EventSink] = None,
    now: Optional[datetime] = None,
) -> SubmitResult:
    """
    Hand in an attempt, auto-grade its objective answers and settle its state.

    Attempts without manual-kind answers go straight to ``graded``; others
    stop at ``submitted`` with a provisional obtained weight.
    """
    if attempt.state != AttemptState.IN_PROGRESS.value:
        raise AlreadySubmitted()

    now = now or utcnow()
    elapsed = (now - as_utc(attempt.started_at)).total_seconds()
    attempt.time_used_minutes = max(0, math.ceil(elapsed / 60))

    answers = {a.question_id: a for a in attempt.answers}
    result = grade_objective(attempt.questions, _load_questions(db, attempt), answers)

    for grade in result.grades:
        answer = answers.get(grade.question_id)
        if answer is None:
            answer = Answer(question_id=grade.question_id)
            attempt.answers.append(answer)
        if grade.requires_manual_review:
            continue
        answer.obtained_weight = grade.obtained_weight
        answer.is_correct = grade.is_correct
        answer.graded_at = now

    attempt.submitted_at = now
    attempt.obtained_weight = result.obtained_weight
    if result.requires_manual_review:
        attempt.state = AttemptState.SUBMITTED.value
        attempt.mark = None
    else:
        attempt.state = AttemptState.GRADED.value
        attempt.mark = compute_mark(result.obtained_weight, attempt.total_weight)
        attempt.graded_at = now

    db.add(attempt)
    db.commit()
    db.refresh(attempt)

    logger.info(
        f"Attempt {attempt.id} submitted -> {attempt.state} "
        f"(obtained {result.obtained_weight}/{attempt.total_weight})"
    )

    _emit(
        events,
        AttemptSubmitted(
            attempt_id=attempt.id,
            assessment_id=attempt.assessment_id,
            student_id=attempt.student_id,
            requires_manual_review=result.requires_manual_review,
        ),
    )
    if attempt.state == AttemptState.GRADED.value:
        _emit(events, _graded_event(attempt))

    return SubmitResult(
        state=attempt.state,
        obtained_weight=result.obtained_weight,
        total_weight=to_decimal(attempt.total_weight),
        mark=attempt.mark,
        requires_manual_review=result.requires_manual_review,
    )


def _graded_event(attempt: Attempt) -> AttemptGraded:
    return AttemptGraded(
        attempt_id=attempt.id,
        assessment_id=attempt.assessment_id,
        student_id=attempt.student_id,
        obtained_weight=to_decimal(attempt.obtained_weight),
        mark=to_decimal(attempt.mark),
    )


def grade_answer(
    db: Session,
    *,
    attempt: Attempt,
    answer_id: int,
    obtained_weight: Decimal,
    feedback: Optional[str] = None,
    grader_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Answer:
    """
    Teacher scores one answer of a submitted attempt. The attempt's
    provisional obtained weight follows immediately.
    """
    if attempt.state != AttemptState.SUBMITTED.value:
        raise AttemptNotSubmitted()

    answer = get_answer(db, attempt_id=attempt.id, answer_id=answer_id)
    max_weight = _snapshot_weight(attempt, answer.question_id)
    value = to_decimal(obtained_weight)
    if value < 0:
        raise NegativeScore()
    if value > max_weight:
        raise ScoreExceedsMaxWeight(f"Score cannot be greater than {max_weight}")

    answer.obtained_weight = quantize_weight(value)
    answer.is_correct = value > 0
    answer.feedback = feedback
    answer.graded_by = grader_id
    answer.graded_at = now or utcnow()

    attempt.obtained_weight = sum_obtained(a.obtained_weight for a in attempt.answers)
    db.add(attempt)
    db.commit()
    db.refresh(answer)
    return answer


def pending_manual_answers(attempt: Attempt) -> List[Answer]:
    return [
        a for a in attempt.answers
        if a.question.kind in MANUAL_KINDS and a.obtained_weight is None
    ]


def publish_results(
    db: Session,
    *,
    attempt: Attempt,
    events: Optional[EventSink] = None,
    now: Optional[datetime] = None,
) -> PublishResult:
    """
    Close manual grading: recompute the obtained weight over every answer,
    derive the mark and move the attempt to ``graded``.
    """
    if attempt.state != AttemptState.SUBMITTED.value:
        raise AttemptNotSubmitted()

    pending = pending_manual_answers(attempt)
    if pending:
        raise PendingManualGrades(
            f"{len(pending)} answer(s) still waiting for manual grading"
        )

    obtained = sum_obtained(a.obtained_weight for a in attempt.answers)
    attempt.obtained_weight = obtained
    attempt.mark = compute_mark(obtained, attempt.total_weight)
    attempt.state = AttemptState.GRADED.value
    attempt.graded_at = now or utcnow()
    db.add(attempt)
    db.commit()
    db.refresh(attempt)

    logger.info(f"Attempt {attempt.id} graded with mark {attempt.mark}")
    _emit(events, _graded_event(attempt))
    return PublishResult(obtained_weight=obtained, mark=to_decimal(attempt.mark))


def release_results(
    db: Session,
    *,
    attempt: Attempt,
    events: Optional[EventSink] = None,
    now: Optional[datetime] = None,
) -> Attempt:
    """graded -> published: results become visible as final to the student."""
    if attempt.state != AttemptState.GRADED.value:
        raise AttemptNotGraded()

    attempt.state = AttemptState.PUBLISHED.value
    attempt.published_at = now or utcnow()
    db.add(attempt)
    db.commit()
    db.refresh(attempt)

    logger.info(f"Attempt {attempt.id} results released")
    _emit(
        events,
        AttemptResultsReleased(
            attempt_id=attempt.id,
            assessment_id=attempt.assessment_id,
            student_id=attempt.student_id,
            mark=to_decimal(attempt.mark),
        ),
    )
    return attempt


def build_attempt_view(
    db: Session,
    *,
    attempt: Attempt,
    grading_view: bool = False,
) -> AttemptDetail:
    """
    Attempt with its questions in display order and the recorded answers.

    The answer key is included for graders, or for anyone once the attempt
    has results and the assessment allows revealing them. Scores stay hidden
    from students until then.
    """
    assessment = attempt.assessment
    has_results = attempt.state in _RESULT_STATES
    reveal = grading_view or (has_results and bool(assessment.reveal_answers))
    show_scores = grading_view or has_results

    questions = _load_questions(db, attempt)
    answers = {a.question_id: a for a in attempt.answers}

    items = []
    for entry in attempt.questions:
        question = questions[entry.question_id]
        kind = question.question_kind

        answer_view = None
        answer = answers.get(question.id)
        if answer is not None:
            answer_view = AnswerPublic.model_validate(answer)
            if not show_scores:
                answer_view = answer_view.model_copy(
                    update={"obtained_weight": None, "is_correct": None, "feedback": None}
                )

        items.append(
            AttemptQuestionView(
                question_id=question.id,
                display_order=entry.display_order,
                kind=question.kind,
                prompt=question.prompt,
                weight=entry.weight,
                options=[
                    OptionView(
                        id=opt.id,
                        text=opt.text,
                        position=opt.position,
                        is_correct=opt.is_correct if reveal else None,
                    )
                    for opt in question.options
                ],
                answer=answer_view,
                correct_option_ids=(
                    sorted(question.correct_option_ids)
                    if reveal and kind == QuestionKind.SELECT
                    else None
                ),
                boolean_key=question.boolean_key if reveal and kind.has_boolean_key else None,
            )
        )

    return AttemptDetail(
        attempt=AttemptPublic.model_validate(attempt),
        assessment_title=assessment.title,
        key_revealed=reveal,
        questions=items,
    )


def list_attempts_for_student(
    db: Session,
    *,
    assessment_id: int,
    student_id: int,
) -> List[Attempt]:
    """
    a student's own attempts, newest first
    """
    return (
        db.query(Attempt)
        .filter(Attempt.assessment_id == assessment_id, Attempt.student_id == student_id)
        .order_by(Attempt.attempt_number.desc())
        .all()
    )


def list_attempts_for_review(
    db: Session,
    *,
    assessment_id: int,
    pending_only: bool = False,
    skip: int = 0,
    limit: int = 100,
) -> List[Attempt]:
    """
    Teacher list of handed-in attempts:
      - submitted ones still need manual grading
      - graded ones can be reviewed or released
    """
    states = [AttemptState.SUBMITTED.value]
    if not pending_only:
        states.append(AttemptState.GRADED.value)

    return (
        db.query(Attempt)
        .filter(Attempt.assessment_id == assessment_id, Attempt.state.in_(states))
        .order_by(Attempt.submitted_at.asc(), Attempt.id.asc())
        .offset(skip)
        .limit(limit)
        .all()
    )
