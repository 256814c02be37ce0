"""
Candidate consolidation and semantic candidate search.

Public API for turning the heuristic and semantic candidate streams into one
deduplicated, confidence-ranked candidate list.
"""

from .consolidator import (
    DEFAULT_AGREEMENT_PROXIMITY,
    ConsolidationResult,
    consolidate,
    merge_candidates,
    remove_nearby_agreements,
)
from .semantic import (
    QueryEmbedding,
    QueryEmbeddings,
    cosine_similarity,
    create_semantic_extractor,
    embed_messages,
    extract_semantic_candidates,
    find_semantic_candidates,
)

__all__ = [
    "DEFAULT_AGREEMENT_PROXIMITY",
    "ConsolidationResult",
    "QueryEmbedding",
    "QueryEmbeddings",
    "consolidate",
    "cosine_similarity",
    "create_semantic_extractor",
    "embed_messages",
    "extract_semantic_candidates",
    "find_semantic_candidates",
    "merge_candidates",
    "remove_nearby_agreements",
]
