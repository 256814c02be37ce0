"""
Cluster classified activities by their normalized fields.

Complete activities (simple "verb + object at place" mentions) cluster on
action, object, venue, city and country. Incomplete ones (compound or
free-text) cluster only with entries that share the exact same title.
"""

from typing import Dict, List, Optional, Sequence, Tuple

import structlog

from ..models.activities import ActivityCluster, ClassifiedActivity, ClusterResult
from .dedup import get_first_mentioned_at, get_last_mentioned_at


logger = structlog.get_logger(__name__)

KEY_SEPARATOR = "|"


def _norm(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def cluster_key(activity: ClassifiedActivity) -> str:
    """
    Cluster key for one activity.

    Examples:
        >>> cluster_key(hike_in_queenstown)
        'hike|||queenstown|new zealand'
        >>> cluster_key(incomplete_titled_dinner_and_movie)
        'dinner and a movie'
    """
    if activity.is_complete:
        return KEY_SEPARATOR.join(
            _norm(v)
            for v in (
                activity.action,
                activity.object,
                activity.venue,
                activity.city,
                activity.country,
            )
        )
    return _norm(activity.activity)


def _pick_representative(instances: Sequence[ClassifiedActivity]) -> ClassifiedActivity:
    # Highest confidence, then activity score; ties keep the earliest
    best = instances[0]
    for candidate in instances[1:]:
        if (candidate.confidence, candidate.activity_score) > (best.confidence, best.activity_score):
            best = candidate
    return best


def _unique_senders(instances: Sequence[ClassifiedActivity]) -> List[str]:
    seen: Dict[str, None] = {}
    for instance in instances:
        senders = [m.sender for m in instance.messages] or [instance.sender]
        for sender in senders:
            seen.setdefault(sender, None)
    return list(seen)


def _build_cluster(key: str, instances: List[ClassifiedActivity]) -> ActivityCluster:
    return ActivityCluster(
        cluster_key=key,
        representative=_pick_representative(instances),
        instances=instances,
        instance_count=len(instances),
        first_mentioned=min(get_first_mentioned_at(a) for a in instances),
        last_mentioned=max(get_last_mentioned_at(a) for a in instances),
        all_senders=_unique_senders(instances),
    )


def cluster_activities(
    activities: Sequence[ClassifiedActivity],
    min_activity_score: Optional[float] = None,
) -> ClusterResult:
    """
    Group activities into clusters.

    Args:
        activities: Classified activities
        min_activity_score: Entries scoring below this go to `filtered`
            instead of being clustered (None disables the filter)

    Returns:
        ClusterResult with clusters sorted by instance count descending,
        then first mention ascending
    """
    kept: List[ClassifiedActivity] = []
    filtered: List[ClassifiedActivity] = []
    for activity in activities:
        if min_activity_score is not None and activity.activity_score < min_activity_score:
            filtered.append(activity)
        else:
            kept.append(activity)

    # Complete and incomplete keys live in separate spaces
    groups: Dict[Tuple[bool, str], List[ClassifiedActivity]] = {}
    for activity in kept:
        groups.setdefault((activity.is_complete, cluster_key(activity)), []).append(activity)

    clusters = [_build_cluster(key, instances) for (_, key), instances in groups.items()]
    clusters.sort(key=lambda c: (-c.instance_count, c.first_mentioned))

    logger.debug(
        "activities_clustered",
        input_count=len(activities),
        cluster_count=len(clusters),
        filtered_count=len(filtered),
    )
    return ClusterResult(clusters=clusters, filtered=filtered)
