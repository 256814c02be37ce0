"""
Schema for raw classifier output items.

The classifier is an untrusted text source: each array item is coerced into
RawClassification before anything downstream sees it. Scores are clamped to
[0, 1], unknown categories fall back to "other", and non-string text fields
read as absent.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ..models.activities import ActivityCategory


DEFAULT_SCORE = 0.5

_TEXT_FIELDS = (
    "activity",
    "location",
    "action",
    "object",
    "venue",
    "city",
    "state",
    "country",
)


def _clamp_score(value: Any) -> float:
    # bool is an int subclass; a boolean score is not a score
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_SCORE
    return max(0.0, min(1.0, float(value)))


class RawClassification(BaseModel):
    """
    One item of the classifier's JSON array.

    Mirrors the fields requested by the classification prompt.
    """

    message_id: int = Field(default=0, description="Id of the classified message")
    is_activity: bool = False
    activity: Optional[str] = Field(default=None, description="Short activity title")
    location: Optional[str] = None
    activity_score: float = Field(default=DEFAULT_SCORE, ge=0.0, le=1.0)
    fun_score: float = Field(default=DEFAULT_SCORE, ge=0.0, le=1.0)
    interesting_score: float = Field(default=DEFAULT_SCORE, ge=0.0, le=1.0)
    category: ActivityCategory = ActivityCategory.OTHER
    confidence: float = Field(default=DEFAULT_SCORE, ge=0.0, le=1.0)

    # Normalized fields
    action: Optional[str] = None
    object: Optional[str] = None
    venue: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    is_complete: bool = True
    is_mappable: bool = False

    model_config = {"extra": "ignore"}

    @model_validator(mode="before")
    @classmethod
    def coerce_loose_fields(cls, data: Any) -> Any:
        """Normalize loosely typed classifier output before field validation."""
        if not isinstance(data, dict):
            raise ValueError("classification item must be an object")
        data = dict(data)

        message_id = data.get("message_id")
        if isinstance(message_id, bool) or not isinstance(message_id, (int, float)):
            data["message_id"] = 0
        else:
            data["message_id"] = int(message_id)

        for name in _TEXT_FIELDS:
            if not isinstance(data.get(name), str):
                data[name] = None

        data["is_activity"] = data.get("is_activity") is True

        location = data.get("location")
        if not isinstance(data.get("is_mappable"), bool):
            data["is_mappable"] = bool(location and location.strip())

        if not isinstance(data.get("is_complete"), bool):
            data["is_complete"] = True

        return data

    @field_validator("activity_score", "fun_score", "interesting_score", "confidence", mode="before")
    @classmethod
    def clamp_scores(cls, v):
        return _clamp_score(v)

    @field_validator("category", mode="before")
    @classmethod
    def fallback_category(cls, v):
        """Unknown or missing categories map to OTHER."""
        if isinstance(v, str):
            normalized = v.strip().lower()
            if normalized in ActivityCategory._value2member_map_:
                return normalized
        return ActivityCategory.OTHER
