"""
Candidate consolidation.

Merges the heuristic (pattern/URL) and semantic candidate streams into one
candidate per message, then drops agreement candidates ("sounds great!",
"I'm keen") that sit close to a suggestion, since the suggestion already
carries the activity details.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple

import structlog

from ..models.candidates import Candidate, CandidateKind


logger = structlog.get_logger(__name__)

# Default message-id distance within which an agreement is considered a reply
DEFAULT_AGREEMENT_PROXIMITY = 5


@dataclass
class ConsolidationResult:
    """Output of candidate consolidation."""

    candidates: List[Candidate] = field(default_factory=list)
    agreements_removed: int = 0
    heuristic_count: int = 0
    semantic_count: int = 0

    @property
    def total_unique(self) -> int:
        return len(self.candidates)


def merge_candidates(
    heuristic: Iterable[Candidate], semantic: Iterable[Candidate]
) -> List[Candidate]:
    """
    Merge two candidate streams into one candidate per message id.

    Heuristic candidates are inserted first. Any later candidate for an id
    already present replaces it only when its confidence is strictly greater,
    so ties keep the heuristic candidate.

    Args:
        heuristic: Pattern/URL-based candidates
        semantic: Embedding-based candidates

    Returns:
        Merged candidates in first-insertion order

    Examples:
        >>> merged = merge_candidates([pattern_0_8], [semantic_0_8])
        >>> merged[0].source.type
        'pattern'
    """
    by_message: Dict[int, Candidate] = {}

    for stream in (heuristic, semantic):
        for candidate in stream:
            existing = by_message.get(candidate.message_id)
            if existing is None or candidate.confidence > existing.confidence:
                by_message[candidate.message_id] = candidate

    return list(by_message.values())


def remove_nearby_agreements(
    candidates: Iterable[Candidate], proximity: int = DEFAULT_AGREEMENT_PROXIMITY
) -> Tuple[List[Candidate], int]:
    """
    Drop agreement candidates within `proximity` messages of a suggestion.

    Distance is symmetric and the boundary is inclusive: an agreement exactly
    `proximity` ids away from a suggestion is removed, one further is kept.
    A proximity <= 0 disables the step.

    Args:
        candidates: Mixed suggestion and agreement candidates
        proximity: Maximum message-id distance for removal

    Returns:
        (surviving candidates sorted by confidence descending, removed count)

    Examples:
        >>> kept, removed = remove_nearby_agreements([suggestion_10, agreement_15, agreement_16], 5)
        >>> [c.message_id for c in kept], removed
        ([10, 16], 1)
    """
    candidates = list(candidates)
    if proximity <= 0:
        return list(candidates), 0

    suggestions = [c for c in candidates if c.candidate_kind == CandidateKind.SUGGESTION]
    agreements = [c for c in candidates if c.candidate_kind == CandidateKind.AGREEMENT]
    suggestion_ids = [s.message_id for s in suggestions]

    kept_agreements: List[Candidate] = []
    removed = 0

    for agreement in agreements:
        nearest = min(
            (abs(sid - agreement.message_id) for sid in suggestion_ids),
            default=None,
        )
        if nearest is not None and nearest <= proximity:
            removed += 1
        else:
            kept_agreements.append(agreement)

    # sorted() is stable, so equal confidences keep suggestion-first order
    result = sorted(suggestions + kept_agreements, key=lambda c: c.confidence, reverse=True)
    return result, removed


def consolidate(
    heuristic: Iterable[Candidate],
    semantic: Iterable[Candidate] = (),
    agreement_proximity: int = DEFAULT_AGREEMENT_PROXIMITY,
) -> ConsolidationResult:
    """
    Merge candidate streams and remove agreement noise.

    Pure function over its inputs.

    Args:
        heuristic: Pattern/URL-based candidates
        semantic: Embedding-based candidates (may be empty)
        agreement_proximity: Agreement removal distance (<= 0 disables)

    Returns:
        ConsolidationResult with candidates sorted by confidence descending
    """
    heuristic = list(heuristic)
    semantic = list(semantic)

    merged = merge_candidates(heuristic, semantic)
    candidates, removed = remove_nearby_agreements(merged, agreement_proximity)

    logger.debug(
        "candidates_consolidated",
        heuristic_count=len(heuristic),
        semantic_count=len(semantic),
        merged_count=len(merged),
        agreements_removed=removed,
        final_count=len(candidates),
    )

    return ConsolidationResult(
        candidates=candidates,
        agreements_removed=removed,
        heuristic_count=len(heuristic),
        semantic_count=len(semantic),
    )
