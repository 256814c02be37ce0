"""
Unit tests for candidate consolidation.

Tests coverage:
- merge_candidates: one candidate per message id, heuristic wins ties
- remove_nearby_agreements: inclusive symmetric boundary, disable sentinel
- consolidate: ordering, counts, end-to-end scenarios
"""

from datetime import datetime, timedelta

import pytest

from chat_activities.candidates.consolidator import (
    consolidate,
    merge_candidates,
    remove_nearby_agreements,
)
from chat_activities.models.candidates import (
    Candidate,
    CandidateKind,
    PatternSource,
    SemanticSource,
)


BASE_TIME = datetime(2025, 1, 1, 12, 0, 0)


def create_candidate(
    message_id: int,
    confidence: float = 0.8,
    kind: CandidateKind = CandidateKind.SUGGESTION,
    semantic: bool = False,
    content: str = None,
) -> Candidate:
    """Helper to create a Candidate for testing."""
    if semantic:
        source = SemanticSource(similarity=confidence, query="we should try")
    else:
        source = PatternSource(pattern="suggestion_pattern")
    return Candidate(
        message_id=message_id,
        content=content or f"message {message_id}",
        sender="Alice",
        timestamp=BASE_TIME + timedelta(minutes=message_id),
        source=source,
        confidence=confidence,
        candidate_kind=kind,
    )


def agreement(message_id: int, confidence: float = 0.6) -> Candidate:
    return create_candidate(message_id, confidence, kind=CandidateKind.AGREEMENT)


@pytest.mark.unit
class TestMergeCandidates:
    """Tests for merge_candidates."""

    def test_disjoint_streams_are_concatenated(self):
        """Candidates for different messages all survive."""
        merged = merge_candidates([create_candidate(1)], [create_candidate(2, semantic=True)])

        assert [c.message_id for c in merged] == [1, 2]

    def test_tie_keeps_heuristic(self):
        """Equal confidence keeps the heuristic candidate."""
        heuristic = create_candidate(5, confidence=0.7)
        semantic = create_candidate(5, confidence=0.7, semantic=True)

        merged = merge_candidates([heuristic], [semantic])

        assert len(merged) == 1
        assert merged[0].source.type == "pattern"

    def test_strictly_greater_semantic_replaces(self):
        """A semantic candidate with higher confidence replaces the heuristic one."""
        heuristic = create_candidate(5, confidence=0.7)
        semantic = create_candidate(5, confidence=0.71, semantic=True)

        merged = merge_candidates([heuristic], [semantic])

        assert len(merged) == 1
        assert merged[0].source.type == "semantic"

    def test_lower_semantic_is_ignored(self):
        """A weaker semantic candidate never replaces."""
        merged = merge_candidates(
            [create_candidate(5, confidence=0.9)],
            [create_candidate(5, confidence=0.5, semantic=True)],
        )

        assert merged[0].confidence == 0.9

    def test_duplicate_heuristics_follow_same_rule(self):
        """Later heuristic duplicates replace only when strictly greater."""
        first = create_candidate(3, confidence=0.6, content="first")
        tie = create_candidate(3, confidence=0.6, content="tie")
        higher = create_candidate(3, confidence=0.9, content="higher")

        assert merge_candidates([first, tie], [])[0].content == "first"
        assert merge_candidates([first, higher], [])[0].content == "higher"

    def test_empty_inputs(self):
        """Empty streams merge to an empty list."""
        assert merge_candidates([], []) == []


@pytest.mark.unit
class TestRemoveNearbyAgreements:
    """Tests for remove_nearby_agreements."""

    def test_boundary_is_inclusive(self):
        """Distance equal to proximity is removed; one more is kept."""
        candidates = [create_candidate(10), agreement(15), agreement(16)]

        kept, removed = remove_nearby_agreements(candidates, proximity=5)

        assert removed == 1
        assert sorted(c.message_id for c in kept) == [10, 16]

    def test_distance_is_symmetric(self):
        """Agreements before and after a suggestion are treated the same."""
        candidates = [create_candidate(10), agreement(5), agreement(15)]

        kept, removed = remove_nearby_agreements(candidates, proximity=5)

        assert removed == 2
        assert [c.message_id for c in kept] == [10]

    def test_nearest_suggestion_is_used(self):
        """Minimum distance over all suggestions decides."""
        candidates = [create_candidate(1), create_candidate(30), agreement(27)]

        kept, removed = remove_nearby_agreements(candidates, proximity=5)

        assert removed == 1
        assert sorted(c.message_id for c in kept) == [1, 30]

    @pytest.mark.parametrize("proximity", [0, -1, -10])
    def test_non_positive_proximity_disables(self, proximity):
        """Proximity <= 0 returns the input unchanged with zero removals."""
        candidates = [create_candidate(10), agreement(11), agreement(12)]

        kept, removed = remove_nearby_agreements(candidates, proximity=proximity)

        assert removed == 0
        assert kept == candidates
        assert kept is not candidates

    def test_only_agreements_are_kept(self):
        """Without suggestions nothing can be removed."""
        candidates = [agreement(1, 0.3), agreement(2, 0.9)]

        kept, removed = remove_nearby_agreements(candidates, proximity=5)

        assert removed == 0
        assert [c.message_id for c in kept] == [2, 1]

    def test_sorted_by_confidence_descending_stable(self):
        """Output is sorted by confidence; ties keep suggestion-first order."""
        candidates = [
            create_candidate(1, 0.5),
            create_candidate(40, 0.9),
            agreement(100, 0.5),
        ]

        kept, _ = remove_nearby_agreements(candidates, proximity=5)

        assert [c.message_id for c in kept] == [40, 1, 100]


@pytest.mark.unit
class TestConsolidate:
    """Tests for consolidate."""

    def test_restaurant_agreement_scenario(self):
        """A reply right after a suggestion is dropped."""
        suggestion = create_candidate(1, 0.8, content="We should try that new restaurant")
        reply = create_candidate(2, 0.6, kind=CandidateKind.AGREEMENT, content="Sounds great!")

        result = consolidate([suggestion, reply], [])

        assert result.agreements_removed == 1
        assert result.total_unique == 1
        assert result.candidates[0].message_id == 1

    def test_merge_against_empty_second_set_is_identity(self):
        """Consolidating against nothing returns the input resorted."""
        heuristic = [create_candidate(1, 0.5), create_candidate(20, 0.9), create_candidate(40, 0.7)]

        result = consolidate(heuristic, [])

        assert [c.message_id for c in result.candidates] == [20, 40, 1]
        assert {c.message_id: c for c in result.candidates} == {c.message_id: c for c in heuristic}

    def test_counts_are_reported(self):
        """Input counts are the raw stream sizes."""
        result = consolidate(
            [create_candidate(1), create_candidate(2)],
            [create_candidate(2, 0.95, semantic=True), create_candidate(50, 0.5, semantic=True)],
        )

        assert result.heuristic_count == 2
        assert result.semantic_count == 2
        assert result.total_unique == 3

    def test_empty_input(self):
        """Empty input gives empty output and zero removals."""
        result = consolidate([], [])

        assert result.candidates == []
        assert result.agreements_removed == 0

    def test_semantic_agreement_near_heuristic_suggestion(self):
        """Agreement kind survives the merge and is then removed."""
        result = consolidate(
            [create_candidate(10, 0.8)],
            [create_candidate(12, 0.7, kind=CandidateKind.AGREEMENT, semantic=True)],
        )

        assert result.agreements_removed == 1
        assert [c.message_id for c in result.candidates] == [10]
