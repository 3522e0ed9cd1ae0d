"""Eligibility and question selection for new attempts (no database)."""
import random
from datetime import timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest

from assessment_engine.core.clock import utcnow
from assessment_engine.core.errors import (
    AttemptsExhausted,
    NoQuestionsAvailable,
    NotOpen,
    NotPublished,
)
from assessment_engine.services.assembler import assemble, check_availability


def _assessment(**overrides):
    values = dict(
        state="published",
        opens_at=None,
        closes_at=None,
        allowed_attempts=1,
        questions_to_show=3,
        shuffle_questions=False,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def _bank(size):
    return [SimpleNamespace(id=i, weight=Decimal(i)) for i in range(1, size + 1)]


class TestAvailability:
    def test_draft_is_not_available(self):
        with pytest.raises(NotPublished):
            check_availability(_assessment(state="draft"))

    def test_closed_state_is_not_available(self):
        with pytest.raises(NotPublished):
            check_availability(_assessment(state="closed"))

    def test_before_open_time(self):
        now = utcnow()
        with pytest.raises(NotOpen):
            check_availability(_assessment(opens_at=now + timedelta(minutes=5)), now)

    def test_close_time_is_exclusive(self):
        now = utcnow()
        with pytest.raises(NotOpen):
            check_availability(_assessment(closes_at=now), now)

    def test_open_time_is_inclusive(self):
        now = utcnow()
        check_availability(_assessment(opens_at=now, closes_at=now + timedelta(hours=1)), now)

    def test_naive_datetimes_are_read_as_utc(self):
        now = utcnow()
        naive_close = (now - timedelta(minutes=1)).replace(tzinfo=None)
        with pytest.raises(NotOpen):
            check_availability(_assessment(closes_at=naive_close), now)


class TestAssemble:
    def test_attempt_limit_is_enforced(self):
        with pytest.raises(AttemptsExhausted):
            assemble(_assessment(allowed_attempts=2), _bank(3), 2)

    def test_empty_bank(self):
        with pytest.raises(NoQuestionsAvailable):
            assemble(_assessment(), [], 0)

    def test_availability_is_checked_before_attempt_count(self):
        with pytest.raises(NotPublished):
            assemble(_assessment(state="draft", allowed_attempts=1), _bank(3), 5)

    def test_fixed_order_takes_first_n(self):
        selection = assemble(_assessment(questions_to_show=2), _bank(4), 0)
        assert selection.question_ids == [1, 2]
        assert selection.total_weight == Decimal("3")

    def test_small_bank_uses_everything(self):
        selection = assemble(_assessment(questions_to_show=10), _bank(3), 0)
        assert selection.question_ids == [1, 2, 3]
        assert selection.total_weight == Decimal("6")

    def test_shuffled_draw_is_a_subset_without_repeats(self):
        selection = assemble(
            _assessment(questions_to_show=4, shuffle_questions=True),
            _bank(10),
            0,
            rng=random.Random(7),
        )
        assert len(selection.question_ids) == 4
        assert len(set(selection.question_ids)) == 4
        assert set(selection.question_ids) <= set(range(1, 11))
        assert selection.total_weight == sum(Decimal(i) for i in selection.question_ids)

    def test_same_seed_gives_same_draw(self):
        assessment = _assessment(questions_to_show=5, shuffle_questions=True)
        first = assemble(assessment, _bank(20), 0, rng=random.Random(42))
        second = assemble(assessment, _bank(20), 0, rng=random.Random(42))
        assert first.question_ids == second.question_ids

    def test_weights_follow_display_order(self):
        selection = assemble(
            _assessment(questions_to_show=3, shuffle_questions=True),
            _bank(6),
            0,
            rng=random.Random(3),
        )
        assert selection.weights == [Decimal(i) for i in selection.question_ids]
