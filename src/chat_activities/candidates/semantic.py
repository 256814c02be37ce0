"""
Semantic candidate search.

Scores messages against pre-computed query embeddings ("we should try...",
"let's go to...") and returns the closest messages as semantic candidates.
The embeddings API itself is an external collaborator passed in as a callable.
"""

import gzip
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Union

import numpy as np
import structlog

from ..cache.backends import ResponseCache
from ..cache.keys import embedding_cache_key
from ..cache.request_cache import cached_call
from ..config import Settings, settings
from ..models.candidates import Candidate, CandidateKind, SemanticSource
from ..models.messages import Message
from ..models.results import ApiError, ApiErrorKind, Err, Ok, Result


logger = structlog.get_logger(__name__)

# Messages shorter than this carry too little signal to embed
MIN_EMBED_LENGTH = 10

# Texts per embeddings request
EMBED_BATCH_SIZE = 100

# (texts) -> Ok(list of vectors) | Err(ApiError)
EmbedFunction = Callable[[List[str]], Result]


@dataclass(frozen=True)
class QueryEmbedding:
    text: str
    vector: np.ndarray
    kind: CandidateKind = CandidateKind.SUGGESTION


class QueryEmbeddings:
    """
    Pre-computed query embeddings table.

    Constructed explicitly by the caller and passed to the search functions;
    loaded once, read many times.
    """

    def __init__(
        self,
        queries: Sequence[QueryEmbedding],
        model: str = "unknown",
    ):
        if not queries:
            raise ValueError("QueryEmbeddings requires at least one query")
        dims = {q.vector.shape[0] for q in queries}
        if len(dims) != 1:
            raise ValueError(f"Query embeddings have mixed dimensions: {sorted(dims)}")

        self.model = model
        self.queries = list(queries)
        self.dimensions = dims.pop()
        self._matrix = _normalize_rows(np.vstack([q.vector for q in self.queries]))

    @classmethod
    def from_mapping(
        cls,
        suggestions: Dict[str, Sequence[float]],
        agreements: Optional[Dict[str, Sequence[float]]] = None,
        model: str = "unknown",
    ) -> "QueryEmbeddings":
        queries = [
            QueryEmbedding(text, np.asarray(vec, dtype=np.float32), CandidateKind.SUGGESTION)
            for text, vec in suggestions.items()
        ]
        queries += [
            QueryEmbedding(text, np.asarray(vec, dtype=np.float32), CandidateKind.AGREEMENT)
            for text, vec in (agreements or {}).items()
        ]
        return cls(queries, model=model)

    @classmethod
    def from_json_gz(cls, path: Union[str, Path]) -> "QueryEmbeddings":
        """
        Load a gzipped JSON query embeddings file.

        Expected shape:
            {"model": str, "queries": [{"text": str, "embedding": [float],
             "type": "suggestion" | "agreement"}]}
        """
        with gzip.open(path, "rt", encoding="utf-8") as fh:
            data = json.load(fh)

        queries = [
            QueryEmbedding(
                text=q["text"],
                vector=np.asarray(q["embedding"], dtype=np.float32),
                kind=CandidateKind(q.get("type", "suggestion")),
            )
            for q in data["queries"]
        ]
        logger.info(
            "query_embeddings_loaded",
            path=str(path),
            model=data.get("model"),
            query_count=len(queries),
        )
        return cls(queries, model=data.get("model", "unknown"))

    def get(self, text: str) -> Optional[np.ndarray]:
        for q in self.queries:
            if q.text == text:
                return q.vector
        return None

    def similarity_matrix(self, vectors: np.ndarray) -> np.ndarray:
        """Cosine similarity of each row of `vectors` against every query."""
        return _normalize_rows(vectors) @ self._matrix.T

    def __len__(self) -> int:
        return len(self.queries)


def _normalize_rows(matrix: np.ndarray) -> np.ndarray:
    matrix = np.atleast_2d(np.asarray(matrix, dtype=np.float32))
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    norms[norms == 0] = 1.0
    return matrix / norms


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity between two vectors.

    Returns 0.0 when either vector has zero magnitude.

    Examples:
        >>> cosine_similarity([1, 0], [1, 0])
        1.0
        >>> cosine_similarity([1, 0], [0, 1])
        0.0
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise ValueError(f"Vector dimensions differ: {va.shape} vs {vb.shape}")
    denom = np.linalg.norm(va) * np.linalg.norm(vb)
    if denom == 0:
        return 0.0
    return float(np.dot(va, vb) / denom)


def find_semantic_candidates(
    messages: Sequence[Message],
    message_embeddings: Sequence[Sequence[float]],
    queries: QueryEmbeddings,
    top_k: int = 500,
    min_similarity: float = 0.4,
) -> List[Candidate]:
    """
    Rank messages by their best query similarity.

    Args:
        messages: Messages that were embedded
        message_embeddings: One vector per message, same order
        queries: Query embeddings table
        top_k: Maximum number of candidates returned
        min_similarity: Similarity floor

    Returns:
        Candidates sorted by similarity descending (ties by message id)
    """
    if len(messages) != len(message_embeddings):
        raise ValueError(
            f"Got {len(message_embeddings)} embeddings for {len(messages)} messages"
        )
    if not messages:
        return []

    scores = queries.similarity_matrix(np.asarray(message_embeddings))
    best_query_idx = scores.argmax(axis=1)
    best_scores = scores.max(axis=1)

    hits = []
    for i, message in enumerate(messages):
        similarity = float(np.clip(best_scores[i], 0.0, 1.0))
        if similarity < min_similarity:
            continue
        hits.append((similarity, message, queries.queries[int(best_query_idx[i])]))

    hits.sort(key=lambda h: (-h[0], h[1].id))

    candidates = [
        Candidate(
            message_id=message.id,
            content=message.content,
            sender=message.sender,
            timestamp=message.timestamp,
            source=SemanticSource(similarity=similarity, query=query.text),
            confidence=similarity,
            candidate_kind=query.kind,
            urls=message.urls,
        )
        for similarity, message, query in hits[:top_k]
    ]

    logger.debug(
        "semantic_candidates_found",
        message_count=len(messages),
        above_threshold=len(hits),
        returned=len(candidates),
    )
    return candidates


def embed_messages(
    texts: List[str],
    embed: EmbedFunction,
    model: str,
    cache: Optional[ResponseCache] = None,
    ttl_seconds: Optional[int] = None,
    batch_size: int = EMBED_BATCH_SIZE,
) -> Result:
    """
    Embed texts in batches through the request cache.

    Any failed batch fails the whole call.

    Returns:
        Ok(list of vectors) in input order, or the first Err
    """
    vectors: List[List[float]] = []
    for start in range(0, len(texts), batch_size):
        chunk = texts[start : start + batch_size]
        key = embedding_cache_key(model, chunk)
        result = cached_call(cache, key, lambda c=chunk: embed(c), ttl_seconds=ttl_seconds)
        if not result.ok:
            return result
        if len(result.value) != len(chunk):
            return Err(
                ApiError(
                    kind=ApiErrorKind.INVALID_RESPONSE,
                    message=f"Expected {len(chunk)} embeddings, got {len(result.value)}",
                )
            )
        vectors.extend(result.value)
    return Ok(vectors)


def extract_semantic_candidates(
    messages: Iterable[Message],
    embed: EmbedFunction,
    queries: QueryEmbeddings,
    cache: Optional[ResponseCache] = None,
    top_k: int = 500,
    min_similarity: float = 0.4,
    ttl_seconds: Optional[int] = None,
) -> Result:
    """
    Extract semantic candidates from messages.

    A failure in any embeddings call aborts the whole extraction; callers fall
    back to heuristic candidates only.

    Returns:
        Ok(list of Candidate) or Err(ApiError)
    """
    eligible = [m for m in messages if len(m.content.strip()) >= MIN_EMBED_LENGTH]
    if not eligible:
        return Ok([])

    embedded = embed_messages(
        [m.content for m in eligible],
        embed,
        model=queries.model,
        cache=cache,
        ttl_seconds=ttl_seconds,
    )
    if not embedded.ok:
        logger.warning(
            "semantic_extraction_failed",
            error_kind=embedded.error.kind.value,
            error=embedded.error.message,
        )
        return embedded

    return Ok(
        find_semantic_candidates(
            eligible,
            embedded.value,
            queries,
            top_k=top_k,
            min_similarity=min_similarity,
        )
    )


def create_semantic_extractor(
    embed: EmbedFunction,
    queries: QueryEmbeddings,
    cache: Optional[ResponseCache] = None,
    config: Optional[Settings] = None,
) -> Callable[[Sequence[Message]], Result]:
    """
    Bind an embeddings function, query table and settings into the
    `messages -> Result` callable the pipeline runner expects.
    """
    config = config or settings

    def extract(messages: Sequence[Message]) -> Result:
        return extract_semantic_candidates(
            messages,
            embed,
            queries,
            cache=cache,
            top_k=config.semantic_top_k,
            min_similarity=config.semantic_min_similarity,
            ttl_seconds=config.embeddings_cache_ttl,
        )

    return extract
