"""
Unit tests for RawClassification coercion of loose classifier output.
"""

import pytest

from chat_activities.classification.schemas import RawClassification
from chat_activities.models.activities import ActivityCategory


def create_item(**overrides) -> dict:
    """Helper returning a well-formed classifier item."""
    item = {
        "message_id": 12,
        "is_activity": True,
        "activity": "Hike Roys Peak",
        "location": "Roys Peak, Wanaka",
        "activity_score": 0.9,
        "fun_score": 0.8,
        "interesting_score": 0.7,
        "category": "hike",
        "confidence": 0.85,
        "action": "hike",
        "venue": "Roys Peak",
        "city": "Wanaka",
        "country": "New Zealand",
        "is_complete": True,
    }
    item.update(overrides)
    return item


@pytest.mark.unit
class TestRawClassification:
    """Tests for RawClassification validation."""

    def test_well_formed_item(self):
        raw = RawClassification.model_validate(create_item())

        assert raw.message_id == 12
        assert raw.is_activity is True
        assert raw.category == ActivityCategory.HIKE
        assert raw.is_mappable is True
        assert raw.state is None

    @pytest.mark.parametrize("value,expected", [(1.7, 1.0), (-0.2, 0.0), ("high", 0.5), (None, 0.5), (True, 0.5)])
    def test_scores_are_clamped(self, value, expected):
        raw = RawClassification.model_validate(create_item(fun_score=value, confidence=value))

        assert raw.fun_score == expected
        assert raw.confidence == expected

    def test_missing_scores_default(self):
        item = create_item()
        del item["activity_score"]

        assert RawClassification.model_validate(item).activity_score == 0.5

    @pytest.mark.parametrize("value", ["spaceflight", None, 3, ""])
    def test_unknown_category_falls_back_to_other(self, value):
        assert RawClassification.model_validate(create_item(category=value)).category == ActivityCategory.OTHER

    def test_category_is_case_insensitive(self):
        assert RawClassification.model_validate(create_item(category=" Restaurant ")).category == ActivityCategory.RESTAURANT

    @pytest.mark.parametrize("value", ["yes", 1, None, "true"])
    def test_is_activity_only_true_when_boolean_true(self, value):
        assert RawClassification.model_validate(create_item(is_activity=value)).is_activity is False

    @pytest.mark.parametrize("value", ["12", None, True, [12]])
    def test_non_numeric_message_id_becomes_zero(self, value):
        assert RawClassification.model_validate(create_item(message_id=value)).message_id == 0

    def test_float_message_id_truncated(self):
        assert RawClassification.model_validate(create_item(message_id=12.0)).message_id == 12

    def test_non_string_text_fields_are_absent(self):
        raw = RawClassification.model_validate(create_item(activity=42, city=["Wanaka"], venue={"name": "x"}))

        assert raw.activity is None
        assert raw.city is None
        assert raw.venue is None

    def test_is_mappable_defaults_from_location(self):
        assert RawClassification.model_validate(create_item(location="  ")).is_mappable is False
        assert RawClassification.model_validate(create_item(location=None)).is_mappable is False
        assert RawClassification.model_validate(create_item(is_mappable=False)).is_mappable is False

    def test_is_complete_defaults_true(self):
        item = create_item()
        del item["is_complete"]

        assert RawClassification.model_validate(item).is_complete is True
        assert RawClassification.model_validate(create_item(is_complete="no")).is_complete is True

    def test_extra_fields_ignored(self):
        raw = RawClassification.model_validate(create_item(reasoning="because"))

        assert not hasattr(raw, "reasoning")

    def test_non_object_rejected(self):
        with pytest.raises(ValueError):
            RawClassification.model_validate(["not", "an", "object"])
