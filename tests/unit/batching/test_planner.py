"""
Unit tests for adaptive batch planning.

Tests coverage:
- group_by_proximity: gap semantics, ordering, totals
- create_smart_batches: combining, flushing, splitting oversized groups
- create_token_batches: budget, overhead seeding, oversize single candidate
- plan_batches: strategies, indices, contract violations
"""

from collections import Counter
from datetime import datetime, timedelta

import pytest

from chat_activities.batching.planner import (
    create_smart_batches,
    create_token_batches,
    group_by_proximity,
    plan_batches,
)
from chat_activities.batching.prompt import format_candidate_fragment
from chat_activities.models.candidates import Candidate, PatternSource


BASE_TIME = datetime(2025, 3, 1, 9, 0, 0)


def create_candidate(message_id: int, content: str = "let's go hiking") -> Candidate:
    """Helper to create a Candidate for testing."""
    return Candidate(
        message_id=message_id,
        content=content,
        sender="Bob",
        timestamp=BASE_TIME + timedelta(minutes=message_id),
        source=PatternSource(pattern="lets_go"),
        confidence=0.8,
    )


def ids(groups):
    return [[c.message_id for c in g] for g in groups]


def fixed_cost_estimator(cost: int):
    """Estimator charging the same cost for every fragment."""
    return lambda text: cost


@pytest.mark.unit
class TestGroupByProximity:
    """Tests for group_by_proximity."""

    def test_splits_on_gap_greater_than_threshold(self):
        """A gap of exactly proximity_gap stays in the group."""
        candidates = [create_candidate(i) for i in (1, 3, 8, 20, 22)]

        assert ids(group_by_proximity(candidates, 5)) == [[1, 3, 8], [20, 22]]

    def test_sorts_input_by_message_id(self):
        """Groups are built over ascending ids regardless of input order."""
        candidates = [create_candidate(i) for i in (22, 1, 20, 3)]

        assert ids(group_by_proximity(candidates, 5)) == [[1, 3], [20, 22]]

    def test_gap_measured_from_previous_member(self):
        """A chain of small gaps forms one group."""
        candidates = [create_candidate(i) for i in (1, 5, 9, 13, 17)]

        assert ids(group_by_proximity(candidates, 4)) == [[1, 5, 9, 13, 17]]

    def test_zero_gap_isolates_each_id(self):
        candidates = [create_candidate(i) for i in (1, 2, 3)]

        assert ids(group_by_proximity(candidates, 0)) == [[1], [2], [3]]

    def test_empty(self):
        assert group_by_proximity([], 5) == []

    def test_negative_gap_rejected(self):
        with pytest.raises(ValueError):
            group_by_proximity([create_candidate(1)], -1)

    @pytest.mark.parametrize("gap", [0, 1, 5, 50])
    def test_preserves_message_ids(self, gap):
        """Concatenated groups hold exactly the input ids."""
        input_ids = [7, 1, 3, 30, 31, 90, 2, 64]
        groups = group_by_proximity([create_candidate(i) for i in input_ids], gap)

        assert Counter(c.message_id for g in groups for c in g) == Counter(input_ids)


@pytest.mark.unit
class TestCreateSmartBatches:
    """Tests for create_smart_batches."""

    def test_small_groups_are_combined(self):
        """Groups that fit together share a batch."""
        candidates = [create_candidate(i) for i in (1, 2, 20, 21, 40)]

        assert ids(create_smart_batches(candidates, batch_size=5, proximity_gap=5)) == [
            [1, 2, 20, 21, 40]
        ]

    def test_flushes_before_overflow(self):
        """A group that would overflow starts a new batch instead of splitting."""
        candidates = [create_candidate(i) for i in (1, 2, 3, 20, 21, 22)]

        assert ids(create_smart_batches(candidates, batch_size=4, proximity_gap=5)) == [
            [1, 2, 3],
            [20, 21, 22],
        ]

    def test_oversized_group_is_split_at_fixed_boundaries(self):
        """Only a group larger than batch_size is split."""
        candidates = [create_candidate(i) for i in range(1, 8)]

        assert ids(create_smart_batches(candidates, batch_size=3, proximity_gap=5)) == [
            [1, 2, 3],
            [4, 5, 6],
            [7],
        ]

    def test_pending_batch_flushed_before_oversized_group(self):
        candidates = [create_candidate(i) for i in (1, 50, 51, 52, 53, 54)]

        assert ids(create_smart_batches(candidates, batch_size=3, proximity_gap=5)) == [
            [1],
            [50, 51, 52],
            [53, 54],
        ]

    @pytest.mark.parametrize("batch_size", [0, -3])
    def test_non_positive_batch_size_rejected(self, batch_size):
        with pytest.raises(ValueError):
            create_smart_batches([create_candidate(1)], batch_size=batch_size)

    def test_preserves_totals(self):
        input_ids = list(range(0, 200, 3)) + [500, 501]
        batches = create_smart_batches([create_candidate(i) for i in input_ids], batch_size=7)

        assert sorted(c.message_id for b in batches for c in b) == sorted(input_ids)
        assert all(0 < len(b) <= 7 for b in batches)


@pytest.mark.unit
class TestCreateTokenBatches:
    """Tests for create_token_batches."""

    def test_overhead_seeds_every_batch(self):
        """Budget 100, overhead 40, cost 20 -> three candidates per batch."""
        candidates = [create_candidate(i) for i in range(1, 8)]

        batches = create_token_batches(
            candidates, max_tokens=100, estimator=fixed_cost_estimator(20), overhead_tokens=40
        )

        assert ids(batches) == [[1, 2, 3], [4, 5, 6], [7]]

    def test_oversized_candidate_gets_own_batch(self):
        """A candidate over budget is never dropped and never shares a batch."""
        candidates = [create_candidate(1, "short"), create_candidate(2, "huge"), create_candidate(3, "short")]

        def estimator(text):
            return 500 if "huge" in text else 10

        batches = create_token_batches(candidates, max_tokens=100, estimator=estimator, overhead_tokens=0)

        assert ids(batches) == [[1], [2], [3]]

    def test_no_multi_candidate_batch_exceeds_budget(self):
        candidates = [create_candidate(i, "x" * (i % 7 + 1) * 10) for i in range(1, 60)]

        def estimator(text):
            return len(text) // 4

        budget, overhead = 120, 30
        batches = create_token_batches(candidates, max_tokens=budget, estimator=estimator, overhead_tokens=overhead)

        for batch in batches:
            total = overhead + sum(estimator(format_candidate_fragment(c)) for c in batch)
            assert len(batch) == 1 or total <= budget
        assert sorted(c.message_id for b in batches for c in b) == list(range(1, 60))

    def test_empty(self):
        assert create_token_batches([], max_tokens=100, estimator=fixed_cost_estimator(1)) == []

    @pytest.mark.parametrize("max_tokens", [0, -1])
    def test_non_positive_budget_rejected(self, max_tokens):
        with pytest.raises(ValueError):
            create_token_batches([create_candidate(1)], max_tokens=max_tokens, estimator=fixed_cost_estimator(1))


@pytest.mark.unit
class TestPlanBatches:
    """Tests for plan_batches."""

    def test_count_strategy_indexes_batches(self):
        candidates = [create_candidate(i) for i in (1, 2, 40, 41)]

        batches = plan_batches(candidates, strategy="count", batch_size=2)

        assert [b.index for b in batches] == [0, 1]
        assert [b.message_ids for b in batches] == [[1, 2], [40, 41]]
        assert all(b.estimated_tokens is None for b in batches)

    def test_token_strategy_records_estimate(self):
        candidates = [create_candidate(i) for i in (1, 2, 3)]

        batches = plan_batches(
            candidates,
            strategy="tokens",
            max_tokens=1000,
            estimator=fixed_cost_estimator(10),
            overhead_tokens=350,
        )

        assert len(batches) == 1
        assert batches[0].estimated_tokens == 380
        assert len(batches[0]) == 3

    def test_empty_input(self):
        assert plan_batches([]) == []

    def test_unknown_strategy_rejected(self):
        with pytest.raises(ValueError, match="Unknown batching strategy"):
            plan_batches([create_candidate(1)], strategy="random")
