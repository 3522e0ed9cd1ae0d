# assessment_engine/services/grading.py
"""
Objective auto-grading.

Pure functions: they read questions, frozen snapshot weights and answers and
return grades, leaving persistence to the lifecycle service. Inputs are read
by attribute so ORM rows and plain objects both work.

Rules per question kind:

- boolean: full weight when the response equals the key, else 0
- select: ``weight * |S & C| / |C|`` where C is the set of correct options
  and S the selected ones (falling back to the legacy single choice when S is
  empty); correct only when ``S == C``
- boolean_justified / free_response: left ungraded (None) for a teacher
- unanswered: 0, incorrect, never sent to manual review
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Mapping, Optional

from assessment_engine.models.question import QuestionKind

WEIGHT_QUANT = Decimal("0.0001")
MARK_QUANT = Decimal("0.01")
MARK_SCALE = Decimal("10")
ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize_weight(value: Decimal) -> Decimal:
    return value.quantize(WEIGHT_QUANT, rounding=ROUND_HALF_UP)


@dataclass
class AnswerGrade:
    question_id: int
    obtained_weight: Optional[Decimal]
    is_correct: Optional[bool]
    requires_manual_review: bool = False
    answered: bool = True


@dataclass
class GradingResult:
    grades: list[AnswerGrade]
    obtained_weight: Decimal
    requires_manual_review: bool

    def by_question(self) -> dict[int, AnswerGrade]:
        return {g.question_id: g for g in self.grades}


def score_boolean(
    weight: Decimal,
    response: Optional[bool],
    key: Optional[bool],
) -> tuple[Decimal, bool]:
    if response is None or key is None or response != key:
        return ZERO, False
    return weight, True


def score_selection(
    weight: Decimal,
    correct_ids: Iterable[int],
    selected_ids: Iterable[int],
    legacy_selected_id: Optional[int] = None,
) -> tuple[Decimal, bool]:
    correct = set(correct_ids)
    selected = set(selected_ids)
    if not selected and legacy_selected_id is not None:
        selected = {legacy_selected_id}

    if not correct or not selected:
        return ZERO, False

    hits = len(selected & correct)
    obtained = quantize_weight(weight * Decimal(hits) / Decimal(len(correct)))
    # clamp into [0, weight]
    obtained = min(max(obtained, ZERO), weight)
    return obtained, selected == correct


def grade_answer(question: Any, weight: Any, answer: Any) -> AnswerGrade:
    """Grade one question of an attempt. ``answer`` is None when unanswered."""
    weight = to_decimal(weight)
    kind = QuestionKind(question.kind)

    if answer is None:
        return AnswerGrade(
            question_id=question.id,
            obtained_weight=ZERO,
            is_correct=False,
            answered=False,
        )

    if kind.is_manual:
        return AnswerGrade(
            question_id=question.id,
            obtained_weight=None,
            is_correct=None,
            requires_manual_review=True,
        )

    if kind == QuestionKind.BOOLEAN:
        obtained, correct = score_boolean(weight, answer.boolean_response, question.boolean_key)
    else:
        obtained, correct = score_selection(
            weight,
            question.correct_option_ids,
            answer.selected_option_ids,
            answer.selected_option_id,
        )

    return AnswerGrade(question_id=question.id, obtained_weight=obtained, is_correct=correct)


def grade_objective(
    snapshot: Iterable[Any],
    questions: Mapping[int, Any],
    answers: Mapping[int, Any],
) -> GradingResult:
    """
    Grade every question of an attempt's frozen snapshot.

    ``snapshot`` yields items with ``question_id`` and the frozen ``weight``;
    ``questions`` and ``answers`` are keyed by question id.
    """
    grades = []
    for item in snapshot:
        question = questions[item.question_id]
        grades.append(grade_answer(question, item.weight, answers.get(item.question_id)))

    return GradingResult(
        grades=grades,
        obtained_weight=sum_obtained(g.obtained_weight for g in grades),
        requires_manual_review=any(g.requires_manual_review for g in grades),
    )


def sum_obtained(values: Iterable[Any]) -> Decimal:
    """Sum obtained weights, treating ungraded (None) as 0."""
    total = ZERO
    for value in values:
        total += to_decimal(value)
    return quantize_weight(total)


def compute_mark(obtained_weight: Any, total_weight: Any) -> Decimal:
    """Normalise to the 0-10 scale; a zero total gives a zero mark."""
    total = to_decimal(total_weight)
    if total <= 0:
        return ZERO.quantize(MARK_QUANT)
    mark = to_decimal(obtained_weight) / total * MARK_SCALE
    return mark.quantize(MARK_QUANT, rounding=ROUND_HALF_UP)
