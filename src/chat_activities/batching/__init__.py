"""
Batch planning for classification calls.
"""

from .planner import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_PROXIMITY_GAP,
    create_smart_batches,
    create_token_batches,
    group_by_proximity,
    plan_batches,
)
from .prompt import build_classification_prompt, format_candidate_fragment
from .tokenizer import MAX_BATCH_TOKENS, SYSTEM_PROMPT_TOKENS, TokenEstimator, count_tokens

__all__ = [
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_PROXIMITY_GAP",
    "MAX_BATCH_TOKENS",
    "SYSTEM_PROMPT_TOKENS",
    "TokenEstimator",
    "build_classification_prompt",
    "count_tokens",
    "create_smart_batches",
    "create_token_batches",
    "format_candidate_fragment",
    "group_by_proximity",
    "plan_batches",
]
