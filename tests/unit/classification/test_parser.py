"""
Unit tests for classifier response parsing.

Tests coverage:
- JSON extraction (fenced, bare, missing)
- structural validation (array, non-empty, objects)
- expected message id check
- conversion into ClassifiedActivity
"""

import json
from datetime import datetime

import pytest

from chat_activities.classification.parser import (
    ClassificationParseError,
    activity_id,
    extract_json_from_response,
    parse_classification_response,
    to_classified_activity,
)
from chat_activities.classification.schemas import RawClassification
from chat_activities.models.candidates import Candidate, PatternSource


ITEMS = [
    {"message_id": 3, "is_activity": True, "activity": "Kayak Abel Tasman", "category": "adventure"},
    {"message_id": 4, "is_activity": False, "activity": None},
]


def create_candidate(message_id: int = 3, content: str = "We should kayak Abel Tasman next summer") -> Candidate:
    return Candidate(
        message_id=message_id,
        content=content,
        sender="Bob",
        timestamp=datetime(2025, 2, 2, 10, 0),
        source=PatternSource(pattern="we_should"),
        confidence=0.8,
        context="Alice: summer plans?\n>>> Bob: " + content,
    )


@pytest.mark.unit
class TestExtractJson:
    """Tests for extract_json_from_response."""

    def test_fenced_block_preferred(self):
        text = 'Here you go [ignore]\n```json\n[{"message_id": 1}]\n```\nthanks'

        assert extract_json_from_response(text) == '[{"message_id": 1}]'

    def test_bare_array_spans_outermost_brackets(self):
        text = 'Result: [{"a": [1, 2]}, {"b": 3}] done'

        assert extract_json_from_response(text) == '[{"a": [1, 2]}, {"b": 3}]'

    def test_no_array(self):
        with pytest.raises(ClassificationParseError, match="Could not find JSON array"):
            extract_json_from_response("I cannot help with that.")


@pytest.mark.unit
class TestParseClassificationResponse:
    """Tests for parse_classification_response."""

    def test_parses_items_in_order(self):
        items = parse_classification_response(json.dumps(ITEMS), expected_ids=[3, 4])

        assert [i.message_id for i in items] == [3, 4]
        assert items[0].is_activity is True
        assert items[1].is_activity is False

    def test_invalid_json(self):
        with pytest.raises(ClassificationParseError, match="Invalid JSON"):
            parse_classification_response("[{message_id: 3,}]")

    def test_empty_array(self):
        with pytest.raises(ClassificationParseError, match="empty"):
            parse_classification_response("[]")

    def test_non_object_item(self):
        with pytest.raises(ClassificationParseError, match="item 1 is not an object"):
            parse_classification_response('[{"message_id": 3}, "oops"]')

    def test_no_expected_id_matches(self):
        with pytest.raises(ClassificationParseError, match="no matching message IDs"):
            parse_classification_response(json.dumps(ITEMS), expected_ids=[99])

    def test_one_matching_id_is_enough(self):
        items = parse_classification_response(json.dumps(ITEMS), expected_ids=[4, 100])

        assert len(items) == 2

    def test_expected_ids_optional(self):
        assert len(parse_classification_response(json.dumps(ITEMS))) == 2


@pytest.mark.unit
class TestToClassifiedActivity:
    """Tests for activity_id and to_classified_activity."""

    def test_activity_id_is_deterministic_and_title_sensitive(self):
        assert activity_id(3, "Kayak") == activity_id(3, "  kayak ")
        assert activity_id(3, "Kayak") != activity_id(3, "Hike")
        assert activity_id(3, "Kayak").startswith("3-")

    def test_builds_activity_from_candidate(self):
        raw = RawClassification.model_validate(
            {**ITEMS[0], "fun_score": 0.9, "interesting_score": 0.6, "city": "Nelson"}
        )
        candidate = create_candidate()

        activity = to_classified_activity(raw, candidate)

        assert activity.activity == "Kayak Abel Tasman"
        assert activity.sender == "Bob"
        assert activity.timestamp == candidate.timestamp
        assert activity.score == 2.1
        assert activity.city == "Nelson"
        assert activity.original_message == candidate.content
        assert [m.message_id for m in activity.messages] == [3]
        assert activity.messages[0].context == candidate.context

    @pytest.mark.parametrize("fun,expected", [(0.35, 0.4), (0.25, 0.3)])
    def test_score_rounds_half_up(self, fun, expected):
        raw = RawClassification.model_validate({**ITEMS[0], "fun_score": fun, "interesting_score": 0.0})

        assert to_classified_activity(raw, create_candidate()).score == expected

    def test_title_falls_back_to_message_text(self):
        long_content = "x" * 150
        raw = RawClassification.model_validate({"message_id": 3, "is_activity": True})

        activity = to_classified_activity(raw, create_candidate(content=long_content))

        assert activity.activity == "x" * 100
