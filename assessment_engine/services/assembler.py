# assessment_engine/services/assembler.py
from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, Sequence

from assessment_engine.core.clock import as_utc, utcnow
from assessment_engine.core.errors import (
    AttemptsExhausted,
    NoQuestionsAvailable,
    NotOpen,
    NotPublished,
)
from assessment_engine.models.assessment import AssessmentState
from assessment_engine.services.grading import to_decimal


@dataclass(frozen=True)
class Selection:
    question_ids: list[int]
    weights: list[Decimal]
    total_weight: Decimal


def check_availability(assessment: Any, now: Optional[datetime] = None) -> None:
    """Published and inside [opens_at, closes_at) when those are set."""
    now = now or utcnow()
    if assessment.state != AssessmentState.PUBLISHED.value:
        raise NotPublished()

    opens_at = as_utc(assessment.opens_at)
    closes_at = as_utc(assessment.closes_at)
    if opens_at is not None and now < opens_at:
        raise NotOpen("Assessment has not started yet")
    if closes_at is not None and now >= closes_at:
        raise NotOpen("Assessment is already closed")


def assemble(
    assessment: Any,
    bank: Sequence[Any],
    prior_attempt_count: int,
    *,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> Selection:
    """
    Pick the questions for a new attempt.

    ``bank`` must be in authored order. With shuffling on, a uniformly random
    subset is drawn and the draw order becomes the display order; otherwise
    the first N authored questions are used.
    """
    check_availability(assessment, now)

    if prior_attempt_count >= assessment.allowed_attempts:
        raise AttemptsExhausted(
            f"All allowed attempts have been used ({assessment.allowed_attempts})"
        )
    if not bank:
        raise NoQuestionsAvailable()

    count = min(assessment.questions_to_show, len(bank))
    if assessment.shuffle_questions:
        chosen = (rng or random.Random()).sample(list(bank), count)
    else:
        chosen = list(bank[:count])

    weights = [to_decimal(q.weight) for q in chosen]
    return Selection(
        question_ids=[q.id for q in chosen],
        weights=weights,
        total_weight=sum(weights, Decimal("0")),
    )
