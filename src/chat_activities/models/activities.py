"""
Classified activity and cluster models.

ClassifiedActivity is the validated, normalized output of the classifier for
one activity mention. ActivityCluster groups instances that denote the same
real-world activity.
"""

import math
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import Field

from .base import CamelModel, FrozenCamelModel
from .messages import SourceMessage


class ActivityCategory(str, Enum):
    """Activity categories understood by the classifier."""

    RESTAURANT = "restaurant"
    CAFE = "cafe"
    BAR = "bar"
    HIKE = "hike"
    NATURE = "nature"
    BEACH = "beach"
    TRIP = "trip"
    HOTEL = "hotel"
    EVENT = "event"
    CONCERT = "concert"
    MUSEUM = "museum"
    ENTERTAINMENT = "entertainment"
    ADVENTURE = "adventure"
    FAMILY = "family"
    ERRAND = "errand"
    APPOINTMENT = "appointment"
    OTHER = "other"


def round_half_up(value: float, decimals: int) -> float:
    """
    Round with halves going up, e.g. 0.125 -> 0.13 at 2 places.

    Python's round() rounds halves to even; scores use the conventional rule.
    """
    factor = 10 ** decimals
    return math.floor(value * factor + 0.5) / factor


def combined_score(interesting_score: float, fun_score: float) -> float:
    """Interest weighted double, rounded half up to 1 decimal place."""
    return round_half_up(interesting_score * 2 + fun_score, 1)


class ClassifiedActivity(CamelModel):
    """
    A normalized activity produced by the classifier.

    Complete entries (is_complete=True) are simple activities fully described
    by the normalized fields; incomplete entries are compound or free-text and
    only their literal title identifies them.
    """

    activity_id: str = Field(description="Stable id: message id + activity title hash")
    message_id: int = Field(ge=0)
    is_activity: bool = True
    activity: str = Field(description="Short activity title")
    category: ActivityCategory = ActivityCategory.OTHER
    activity_score: float = Field(default=0.5, ge=0.0, le=1.0)
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    fun_score: float = Field(default=0.5, ge=0.0, le=1.0)
    interesting_score: float = Field(default=0.5, ge=0.0, le=1.0)
    score: float = Field(default=1.5, description="interesting_score * 2 + fun_score")

    # Normalized fields
    location: Optional[str] = None
    venue: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    action: Optional[str] = None
    object: Optional[str] = None
    is_complete: bool = True
    is_mappable: bool = False

    # Provenance
    sender: str
    timestamp: datetime
    original_message: str = ""
    messages: List[SourceMessage] = Field(default_factory=list)

    def format_location(self) -> Optional[str]:
        """
        Human-readable location.

        Joins venue, city, state and country when any are present, otherwise
        falls back to the raw location string.

        Returns:
            Location string or None when the activity has no location
        """
        parts = [p.strip() for p in (self.venue, self.city, self.state, self.country) if p and p.strip()]
        if parts:
            return ", ".join(parts)
        if self.location and self.location.strip():
            return self.location.strip()
        return None


class ActivityCluster(FrozenCamelModel):
    """A group of classified activities that denote the same activity."""

    cluster_key: str
    representative: ClassifiedActivity
    instances: List[ClassifiedActivity]
    instance_count: int = Field(ge=1)
    first_mentioned: datetime
    last_mentioned: datetime
    all_senders: List[str]


class ClusterResult(FrozenCamelModel):
    """Clusters plus the entries removed by the activity score filter."""

    clusters: List[ActivityCluster] = Field(default_factory=list)
    filtered: List[ClassifiedActivity] = Field(default_factory=list)
