"""
Classification boundary: prompt batches in, validated ClassifiedActivity out.

Components:
- schemas: coercion model for raw classifier items
- parser: JSON extraction, validation, ClassifiedActivity construction
- client: classifier client abstraction (OpenAI-compatible providers)
- classifier: batch orchestration with request caching and bounded concurrency
"""

from .classifier import BatchError, ClassificationOutcome, ClassifierConfig, classify_candidates
from .client import ClassifierClient, OpenAICompatibleClient, create_classifier_client, map_openai_error
from .parser import (
    ClassificationParseError,
    activity_id,
    parse_classification_response,
    to_classified_activity,
)
from .schemas import RawClassification

__all__ = [
    "BatchError",
    "ClassificationOutcome",
    "ClassificationParseError",
    "ClassifierClient",
    "ClassifierConfig",
    "OpenAICompatibleClient",
    "RawClassification",
    "activity_id",
    "classify_candidates",
    "create_classifier_client",
    "map_openai_error",
    "parse_classification_response",
    "to_classified_activity",
]
