"""
Unit tests for token estimation and prompt fragments.

tiktoken is mocked so the tests never download encoding files.
"""

from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest

from chat_activities.batching.prompt import (
    build_classification_prompt,
    format_candidate_fragment,
    format_timestamp,
)
from chat_activities.batching.tokenizer import TokenEstimator, count_tokens
from chat_activities.models.candidates import Candidate, PatternSource


@pytest.fixture
def mock_encoding():
    """Whitespace 'tokenizer' standing in for cl100k_base."""
    encoding = MagicMock()
    encoding.encode.side_effect = lambda text, disallowed_special=(): text.split()
    return encoding


def create_candidate(context=None) -> Candidate:
    return Candidate(
        message_id=42,
        content="We should hike Roys Peak",
        sender="Alice",
        timestamp=datetime(2025, 1, 5, 15, 4),
        source=PatternSource(pattern="we_should"),
        confidence=0.9,
        context=context,
    )


@pytest.mark.unit
class TestTokenEstimator:
    """Tests for TokenEstimator."""

    def test_counts_tokens(self, mock_encoding):
        with patch("chat_activities.batching.tokenizer.tiktoken.get_encoding", return_value=mock_encoding):
            estimator = TokenEstimator()
            assert estimator.count_tokens("one two three") == 3
            assert estimator("four five") == 2

    def test_empty_text_is_zero_without_loading_encoding(self):
        with patch("chat_activities.batching.tokenizer.tiktoken.get_encoding") as get_encoding:
            assert TokenEstimator().count_tokens("") == 0
            get_encoding.assert_not_called()

    def test_encoding_loaded_once_per_instance(self, mock_encoding):
        with patch(
            "chat_activities.batching.tokenizer.tiktoken.get_encoding", return_value=mock_encoding
        ) as get_encoding:
            estimator = TokenEstimator("cl100k_base")
            estimator.count_tokens("a b")
            estimator.count_tokens("c d")

            get_encoding.assert_called_once_with("cl100k_base")

    def test_module_helper(self, mock_encoding):
        with patch("chat_activities.batching.tokenizer.tiktoken.get_encoding", return_value=mock_encoding):
            assert count_tokens("a b c d") == 4


@pytest.mark.unit
class TestPromptFragments:
    """Tests for prompt formatting."""

    def test_timestamp_format(self):
        assert format_timestamp(datetime(2025, 1, 5, 15, 4)) == "Jan 5, 2025, 3:04 PM"
        assert format_timestamp(datetime(2025, 12, 25, 0, 30)) == "Dec 25, 2025, 12:30 AM"

    def test_fragment_falls_back_to_sender_line(self):
        fragment = format_candidate_fragment(create_candidate())

        assert fragment == (
            "---\n"
            "ID: 42 | Jan 5, 2025, 3:04 PM\n"
            ">>> Alice: We should hike Roys Peak\n"
            "---"
        )

    def test_fragment_uses_context(self):
        context = "Bob: free this weekend?\n>>> Alice: We should hike Roys Peak"

        fragment = format_candidate_fragment(create_candidate(context=context))

        assert context in fragment
        assert fragment.startswith("---\nID: 42 |")

    def test_prompt_contains_every_fragment_and_user_context(self):
        candidates = [create_candidate(), create_candidate(context="ctx line")]

        prompt = build_classification_prompt(candidates, home_country="New Zealand", timezone="Pacific/Auckland")

        for candidate in candidates:
            assert format_candidate_fragment(candidate) in prompt
        assert "New Zealand" in prompt
        assert "Pacific/Auckland" in prompt
        assert '"message_id": <id>' in prompt
