"""
Parse and validate classifier responses.

Multi-stage validation of a raw response:
1. Locate the JSON array (```json fence, else the outermost [...] span)
2. JSON parse
3. Schema coercion of every item (RawClassification)
4. Business rule: at least one item references an expected message id
"""

import hashlib
import json
import re
from typing import List, Optional, Sequence

import structlog
from pydantic import ValidationError

from ..models.activities import ClassifiedActivity, combined_score
from ..models.candidates import Candidate
from ..models.messages import SourceMessage
from .schemas import RawClassification


logger = structlog.get_logger(__name__)

_FENCED_JSON = re.compile(r"```json\s*([\s\S]*?)\s*```")
_BARE_ARRAY = re.compile(r"\[[\s\S]*\]")


class ClassificationParseError(ValueError):
    """Classifier response could not be turned into classifications."""


def extract_json_from_response(text: str) -> str:
    """
    Pull the JSON array text out of a classifier response.

    Raises:
        ClassificationParseError: If no array can be located
    """
    fenced = _FENCED_JSON.search(text)
    if fenced and fenced.group(1):
        return fenced.group(1)

    bare = _BARE_ARRAY.search(text)
    if not bare:
        raise ClassificationParseError("Could not find JSON array in response")
    return bare.group(0)


def parse_classification_response(
    text: str, expected_ids: Optional[Sequence[int]] = None
) -> List[RawClassification]:
    """
    Parse a classifier response into validated items.

    Args:
        text: Raw response text
        expected_ids: Message ids sent in the batch; at least one must appear

    Returns:
        Validated classification items, in response order

    Raises:
        ClassificationParseError: On missing/invalid JSON, a non-array or empty
            array, a non-object item, or no matching message id
    """
    try:
        parsed = json.loads(extract_json_from_response(text))
    except json.JSONDecodeError as e:
        raise ClassificationParseError(f"Invalid JSON: {e}") from e

    if not isinstance(parsed, list):
        raise ClassificationParseError("Response is not an array")
    if not parsed:
        raise ClassificationParseError("Response array is empty")

    items: List[RawClassification] = []
    for idx, item in enumerate(parsed):
        if not isinstance(item, dict):
            raise ClassificationParseError(f"Array item {idx} is not an object")
        try:
            items.append(RawClassification.model_validate(item))
        except ValidationError as e:
            raise ClassificationParseError(f"Schema violation in item {idx}: {e}") from e

    if expected_ids:
        expected = set(expected_ids)
        if not any(item.message_id in expected for item in items):
            got = [item.message_id for item in items]
            raise ClassificationParseError(
                f"Response contains no matching message IDs. "
                f"Expected: {sorted(expected)}, got: {got}"
            )

    logger.debug("classification_response_parsed", item_count=len(items))
    return items


def activity_id(message_id: int, title: str) -> str:
    """
    Deterministic activity id.

    One message may yield several activities, so the title is part of the id.

    Examples:
        >>> activity_id(42, "Hike Roys Peak") == activity_id(42, "Hike Roys Peak")
        True
    """
    raw = f"{message_id}|{title.strip().lower()}".encode("utf-8")
    return f"{message_id}-{hashlib.sha1(raw).hexdigest()[:12]}"


def to_classified_activity(raw: RawClassification, candidate: Candidate) -> ClassifiedActivity:
    """
    Build a ClassifiedActivity from a validated item and its candidate.

    The activity title falls back to the message text when the classifier
    gave none.
    """
    title = (raw.activity or "").strip() or candidate.content.strip()[:100]

    source = SourceMessage(
        message_id=candidate.message_id,
        sender=candidate.sender,
        timestamp=candidate.timestamp,
        content=candidate.content,
        context=candidate.context,
    )

    return ClassifiedActivity(
        activity_id=activity_id(candidate.message_id, title),
        message_id=candidate.message_id,
        is_activity=raw.is_activity,
        activity=title,
        category=raw.category,
        activity_score=raw.activity_score,
        confidence=raw.confidence,
        fun_score=raw.fun_score,
        interesting_score=raw.interesting_score,
        score=combined_score(raw.interesting_score, raw.fun_score),
        location=raw.location,
        venue=raw.venue,
        city=raw.city,
        state=raw.state,
        country=raw.country,
        action=raw.action,
        object=raw.object,
        is_complete=raw.is_complete,
        is_mappable=raw.is_mappable,
        sender=candidate.sender,
        timestamp=candidate.timestamp,
        original_message=candidate.content,
        messages=[source],
    )
