"""
Adaptive batch planning for classification.

Two strategies:
- count-bounded batches that keep nearby messages (one conversational
  thread) in the same classification call
- token-bounded batches sized against the model's context budget

Both operate over candidates sorted ascending by message id.
"""

from typing import Callable, List, Optional, Sequence

import structlog

from ..models.candidates import Batch, Candidate
from .prompt import format_candidate_fragment
from .tokenizer import MAX_BATCH_TOKENS, SYSTEM_PROMPT_TOKENS, TokenEstimator


logger = structlog.get_logger(__name__)

# Messages closer than this many ids are treated as one discussion
DEFAULT_PROXIMITY_GAP = 5

DEFAULT_BATCH_SIZE = 30

STRATEGY_COUNT = "count"
STRATEGY_TOKENS = "tokens"


def _sorted_by_id(candidates: Sequence[Candidate]) -> List[Candidate]:
    return sorted(candidates, key=lambda c: c.message_id)


def group_by_proximity(
    candidates: Sequence[Candidate], proximity_gap: int = DEFAULT_PROXIMITY_GAP
) -> List[List[Candidate]]:
    """
    Group candidates that are close together in the conversation.

    A new group starts whenever the id gap to the previous group member
    exceeds `proximity_gap`.

    Args:
        candidates: Candidates in any order
        proximity_gap: Maximum id gap within a group (>= 0)

    Returns:
        Groups in ascending id order

    Examples:
        >>> [[c.message_id for c in g] for g in group_by_proximity(cands_1_3_20_22, 5)]
        [[1, 3], [20, 22]]
    """
    if proximity_gap < 0:
        raise ValueError(f"proximity_gap must be >= 0, got {proximity_gap}")

    groups: List[List[Candidate]] = []
    current: List[Candidate] = []

    for candidate in _sorted_by_id(candidates):
        if current and candidate.message_id - current[-1].message_id > proximity_gap:
            groups.append(current)
            current = []
        current.append(candidate)

    if current:
        groups.append(current)

    return groups


def create_smart_batches(
    candidates: Sequence[Candidate],
    batch_size: int = DEFAULT_BATCH_SIZE,
    proximity_gap: int = DEFAULT_PROXIMITY_GAP,
) -> List[List[Candidate]]:
    """
    Fold proximity groups into batches of at most `batch_size` candidates.

    Small groups are combined; the current batch is flushed before a group
    that would overflow it. A group larger than `batch_size` is split at
    fixed-size boundaries, the only case where a discussion is split.

    Args:
        candidates: Candidates in any order
        batch_size: Maximum candidates per batch (> 0)
        proximity_gap: Maximum id gap within a group

    Returns:
        Batches of candidates
    """
    if batch_size <= 0:
        raise ValueError(f"batch_size must be > 0, got {batch_size}")

    batches: List[List[Candidate]] = []
    current: List[Candidate] = []

    for group in group_by_proximity(candidates, proximity_gap):
        if len(current) + len(group) <= batch_size:
            current.extend(group)
            continue

        if current:
            batches.append(current)
            current = []

        if len(group) > batch_size:
            for start in range(0, len(group), batch_size):
                batches.append(group[start : start + batch_size])
        else:
            current = list(group)

    if current:
        batches.append(current)

    return batches


def create_token_batches(
    candidates: Sequence[Candidate],
    max_tokens: int = MAX_BATCH_TOKENS,
    estimator: Optional[Callable[[str], int]] = None,
    overhead_tokens: int = SYSTEM_PROMPT_TOKENS,
) -> List[List[Candidate]]:
    """
    Accumulate candidates into batches bounded by an estimated token budget.

    Every batch starts at `overhead_tokens` (the fixed instructions); each
    candidate costs the token estimate of its prompt fragment. A batch always
    holds at least one candidate, so a single oversized candidate gets a
    batch of its own.

    Args:
        candidates: Candidates in any order
        max_tokens: Token ceiling per batch (> 0)
        estimator: text -> token count (default: cl100k_base TokenEstimator)
        overhead_tokens: Fixed per-batch prompt overhead

    Returns:
        Batches of candidates in ascending id order
    """
    return [batch for batch, _ in _token_batches(candidates, max_tokens, estimator, overhead_tokens)]


def _token_batches(candidates, max_tokens, estimator, overhead_tokens):
    if max_tokens <= 0:
        raise ValueError(f"max_tokens must be > 0, got {max_tokens}")
    estimator = estimator or TokenEstimator()

    batches = []
    current: List[Candidate] = []
    tokens = overhead_tokens

    for candidate in _sorted_by_id(candidates):
        cost = estimator(format_candidate_fragment(candidate))
        if current and tokens + cost > max_tokens:
            batches.append((current, tokens))
            current = []
            tokens = overhead_tokens
        current.append(candidate)
        tokens += cost

    if current:
        batches.append((current, tokens))

    return batches


def plan_batches(
    candidates: Sequence[Candidate],
    strategy: str = STRATEGY_COUNT,
    batch_size: int = DEFAULT_BATCH_SIZE,
    proximity_gap: int = DEFAULT_PROXIMITY_GAP,
    max_tokens: int = MAX_BATCH_TOKENS,
    estimator: Optional[Callable[[str], int]] = None,
    overhead_tokens: int = SYSTEM_PROMPT_TOKENS,
) -> List[Batch]:
    """
    Plan classification batches.

    Args:
        candidates: Consolidated candidates
        strategy: "count" (proximity-grouped) or "tokens" (token-budgeted)
        batch_size: Count strategy limit
        proximity_gap: Count strategy grouping gap
        max_tokens: Token strategy budget
        estimator: Token strategy estimator
        overhead_tokens: Token strategy per-batch overhead

    Returns:
        Indexed Batch objects
    """
    if strategy == STRATEGY_COUNT:
        planned = [(b, None) for b in create_smart_batches(candidates, batch_size, proximity_gap)]
    elif strategy == STRATEGY_TOKENS:
        planned = _token_batches(candidates, max_tokens, estimator, overhead_tokens)
    else:
        raise ValueError(f"Unknown batching strategy: {strategy}. Supported: count, tokens")

    batches = [
        Batch(index=i, candidates=tuple(members), estimated_tokens=tokens)
        for i, (members, tokens) in enumerate(planned)
    ]

    logger.debug(
        "batches_planned",
        strategy=strategy,
        candidate_count=len(candidates),
        batch_count=len(batches),
    )
    return batches
