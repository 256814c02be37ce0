"""
Activity filtering and ranking helpers.
"""

from typing import List, Sequence

from ..models.activities import ClassifiedActivity


MIN_ACTIVITY_SCORE = 0.5


def filter_activities(
    activities: Sequence[ClassifiedActivity], min_activity_score: float = MIN_ACTIVITY_SCORE
) -> List[ClassifiedActivity]:
    """Keep entries flagged as activities with activity_score >= threshold."""
    return [a for a in activities if a.is_activity and a.activity_score >= min_activity_score]


def sort_activities_by_score(activities: Sequence[ClassifiedActivity]) -> List[ClassifiedActivity]:
    """Highest combined score first; equal scores keep their input order."""
    return sorted(activities, key=lambda a: a.score, reverse=True)
