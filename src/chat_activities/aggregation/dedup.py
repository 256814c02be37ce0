"""
Fuzzy deduplication of classified activities.

Merges repeated mentions of the same activity into one entry, combining their
messages. Activities mentioned several times are more valuable, not noise, so
mention counts are preserved through the merged message list.
"""

from datetime import datetime
from typing import List, Sequence

import structlog

from ..models.activities import ClassifiedActivity, combined_score, round_half_up
from .similarity import name_similarity, normalize_string


logger = structlog.get_logger(__name__)

SIMILARITY_THRESHOLD = 0.8


def should_group(
    a: ClassifiedActivity, b: ClassifiedActivity, threshold: float = SIMILARITY_THRESHOLD
) -> bool:
    """
    Whether two activities denote the same thing.

    Matching criteria, in order:
    1. Both have a location and the locations match case-insensitively
    2. Activity name similarity >= threshold
    """
    loc_a = a.format_location()
    loc_b = b.format_location()
    if loc_a and loc_b and normalize_string(loc_a) == normalize_string(loc_b):
        return True

    return name_similarity(a.activity, b.activity) >= threshold


def deduplicate_activities(
    activities: Sequence[ClassifiedActivity], threshold: float = SIMILARITY_THRESHOLD
) -> List[ClassifiedActivity]:
    """
    Greedy single-pass deduplication.

    Each ungrouped activity, in original order, leads a group and absorbs every
    later ungrouped activity that matches it. The leader keeps its own fields;
    messages from all members are concatenated; fun and interesting scores are
    averaged (2 dp) and the combined score recomputed (1 dp).

    Args:
        activities: Classified activities
        threshold: Name similarity threshold

    Returns:
        Deduplicated activities, never longer than the input

    Examples:
        >>> result = deduplicate_activities([pottery_class, Pottery_Class, pottery_classes])
        >>> len(result), get_mention_count(result[0])
        (1, 3)
    """
    grouped = set()
    result: List[ClassifiedActivity] = []

    for i, leader in enumerate(activities):
        if i in grouped:
            continue

        members = [leader]
        grouped.add(i)
        for j in range(i + 1, len(activities)):
            if j in grouped:
                continue
            if should_group(leader, activities[j], threshold):
                members.append(activities[j])
                grouped.add(j)

        if len(members) == 1:
            result.append(leader)
            continue

        fun = round_half_up(sum(m.fun_score for m in members) / len(members), 2)
        interesting = round_half_up(sum(m.interesting_score for m in members) / len(members), 2)
        result.append(
            leader.model_copy(
                update={
                    "messages": [msg for m in members for msg in m.messages],
                    "fun_score": fun,
                    "interesting_score": interesting,
                    "score": combined_score(interesting, fun),
                }
            )
        )

    logger.debug(
        "activities_deduplicated",
        input_count=len(activities),
        output_count=len(result),
    )
    return result


def get_mention_count(activity: ClassifiedActivity) -> int:
    return len(activity.messages)


def get_first_mentioned_at(activity: ClassifiedActivity) -> datetime:
    if not activity.messages:
        return activity.timestamp
    return min(m.timestamp for m in activity.messages)


def get_last_mentioned_at(activity: ClassifiedActivity) -> datetime:
    if not activity.messages:
        return activity.timestamp
    return max(m.timestamp for m in activity.messages)


def filter_by_mention_count(
    activities: Sequence[ClassifiedActivity], min_count: int
) -> List[ClassifiedActivity]:
    return [a for a in activities if get_mention_count(a) >= min_count]


def get_most_wanted(
    activities: Sequence[ClassifiedActivity], limit: int = 10
) -> List[ClassifiedActivity]:
    """Activities mentioned more than once, in input order."""
    return [a for a in activities if get_mention_count(a) > 1][:limit]
