# assessment_engine/services/statistics_service.py
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import List

from sqlalchemy.orm import Session

from assessment_engine.models.answer import Answer
from assessment_engine.models.assessment import Assessment
from assessment_engine.models.attempt import Attempt, AttemptState
from assessment_engine.schemas.statistics import (
    AssessmentStatistics,
    BestAttempt,
    GeneralMetrics,
    QuestionPerformance,
)
from assessment_engine.services.grading import to_decimal

TWO_PLACES = Decimal("0.01")
HUNDRED = Decimal("100")

# (label, lower bound inclusive, upper bound exclusive)
MARK_BUCKETS = [
    ("0-3.99", Decimal("0"), Decimal("4")),
    ("4-5.99", Decimal("4"), Decimal("6")),
    ("6-7.99", Decimal("6"), Decimal("8")),
    ("8-8.99", Decimal("8"), Decimal("9")),
    ("9-10", Decimal("9"), Decimal("10.01")),
]

_HANDED_IN = (
    AttemptState.SUBMITTED.value,
    AttemptState.GRADED.value,
    AttemptState.PUBLISHED.value,
)
_WITH_MARK = (AttemptState.GRADED.value, AttemptState.PUBLISHED.value)


def _round(value: Decimal) -> Decimal:
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def _mean(values: List[Decimal]) -> Decimal:
    if not values:
        return _round(Decimal("0"))
    return _round(sum(values, Decimal("0")) / Decimal(len(values)))


def _percentage(part: int, whole: int) -> Decimal:
    if whole == 0:
        return _round(Decimal("0"))
    return _round(Decimal(part) * HUNDRED / Decimal(whole))


def mark_bucket(mark: Decimal) -> str:
    for label, low, high in MARK_BUCKETS:
        if low <= mark < high:
            return label
    return MARK_BUCKETS[-1][0]


def best_attempts(attempts: List[Attempt]) -> dict[int, Attempt]:
    """
    Highest mark per student among attempts with a mark; on a tie the
    earlier attempt wins.
    """
    best: dict[int, Attempt] = {}
    for attempt in sorted(attempts, key=lambda a: a.attempt_number):
        current = best.get(attempt.student_id)
        if current is None or to_decimal(attempt.mark) > to_decimal(current.mark):
            best[attempt.student_id] = attempt
    return best


def _general(assessment: Assessment, attempts: List[Attempt], graded: List[Attempt],
             best: dict[int, Attempt]) -> GeneralMetrics:
    passing = to_decimal(assessment.passing_mark)
    marks = [to_decimal(a.mark) for a in graded]
    times = [Decimal(a.time_used_minutes) for a in attempts if a.time_used_minutes is not None]
    passed = sum(1 for a in best.values() if to_decimal(a.mark) >= passing)
    failed = len(best) - passed

    return GeneralMetrics(
        total_students=len({a.student_id for a in attempts}),
        total_attempts=len(attempts),
        graded_attempts=len(graded),
        mean_mark=_mean(marks),
        max_mark=_round(max(marks)) if marks else _round(Decimal("0")),
        min_mark=_round(min(marks)) if marks else _round(Decimal("0")),
        mean_time_used_minutes=_mean(times),
        passed=passed,
        failed=failed,
        pass_rate=_percentage(passed, len(best)),
    )


def _question_performance(db: Session, assessment: Assessment,
                          graded: List[Attempt]) -> List[QuestionPerformance]:
    attempt_ids = [a.id for a in graded]
    answers: List[Answer] = []
    if attempt_ids:
        answers = db.query(Answer).filter(Answer.attempt_id.in_(attempt_ids)).all()

    by_question: dict[int, List[Answer]] = {}
    for answer in answers:
        by_question.setdefault(answer.question_id, []).append(answer)

    rows = []
    for question in assessment.questions:
        scored = [a for a in by_question.get(question.id, []) if a.obtained_weight is not None]
        correct = sum(1 for a in scored if a.is_correct)
        rows.append(
            QuestionPerformance(
                question_id=question.id,
                prompt=question.prompt,
                kind=question.kind,
                max_weight=to_decimal(question.weight),
                total_answers=len(scored),
                correct_answers=correct,
                mean_obtained_weight=_mean([to_decimal(a.obtained_weight) for a in scored]),
                correct_percentage=_percentage(correct, len(scored)),
            )
        )
    return rows


def assessment_statistics(db: Session, *, assessment: Assessment) -> AssessmentStatistics:
    """
    Teacher report for one assessment. Only handed-in attempts count; marks,
    distribution and per-question figures use attempts that have a mark.
    """
    attempts = (
        db.query(Attempt)
        .filter(Attempt.assessment_id == assessment.id, Attempt.state.in_(_HANDED_IN))
        .order_by(Attempt.student_id.asc(), Attempt.attempt_number.asc())
        .all()
    )
    graded = [a for a in attempts if a.state in _WITH_MARK]
    best = best_attempts(graded)
    passing = to_decimal(assessment.passing_mark)

    distribution = {label: 0 for label, _, _ in MARK_BUCKETS}
    for attempt in graded:
        distribution[mark_bucket(to_decimal(attempt.mark))] += 1

    students = [
        BestAttempt(
            student_id=a.student_id,
            attempt_id=a.id,
            attempt_number=a.attempt_number,
            state=a.state,
            mark=to_decimal(a.mark),
            obtained_weight=to_decimal(a.obtained_weight),
            total_weight=to_decimal(a.total_weight),
            submitted_at=a.submitted_at,
            time_used_minutes=a.time_used_minutes,
            passed=to_decimal(a.mark) >= passing,
        )
        for a in sorted(best.values(), key=lambda a: to_decimal(a.mark), reverse=True)
    ]

    return AssessmentStatistics(
        assessment_id=assessment.id,
        title=assessment.title,
        passing_mark=passing,
        general=_general(assessment, attempts, graded, best),
        questions=_question_performance(db, assessment, graded),
        mark_distribution=distribution,
        students=students,
    )
