"""
Aggregation of classified activities: fuzzy deduplication and clustering.
"""

from .clustering import cluster_activities, cluster_key
from .dedup import (
    deduplicate_activities,
    filter_by_mention_count,
    get_first_mentioned_at,
    get_last_mentioned_at,
    get_mention_count,
    get_most_wanted,
)
from .filters import filter_activities, sort_activities_by_score
from .similarity import levenshtein_distance, name_similarity, normalize_string

__all__ = [
    "cluster_activities",
    "cluster_key",
    "deduplicate_activities",
    "filter_activities",
    "filter_by_mention_count",
    "get_first_mentioned_at",
    "get_last_mentioned_at",
    "get_mention_count",
    "get_most_wanted",
    "levenshtein_distance",
    "name_similarity",
    "normalize_string",
    "sort_activities_by_score",
]
