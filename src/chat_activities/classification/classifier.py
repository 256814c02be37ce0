"""
Batch classification orchestrator.

Plans batches over consolidated candidates, answers each batch from the
request cache or the classifier client, validates every response through the
parser, and merges the per-batch results keyed by message id.

Batches are independent: they run with bounded concurrency, completion order
does not affect the merged output, and a failed batch contributes nothing
while every successful batch stays in the request cache.
"""

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import structlog

from ..batching.planner import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_PROXIMITY_GAP,
    STRATEGY_COUNT,
    plan_batches,
)
from ..batching.prompt import build_classification_prompt
from ..batching.tokenizer import MAX_BATCH_TOKENS, SYSTEM_PROMPT_TOKENS, TokenEstimator
from ..cache.backends import ResponseCache
from ..cache.keys import classifier_cache_key
from ..cache.request_cache import cached_call
from ..config import Settings
from ..models.activities import ClassifiedActivity
from ..models.candidates import Batch, Candidate
from ..models.results import ApiError, ApiErrorKind, Err, Ok, Result
from .client import ClassifierClient
from .parser import ClassificationParseError, parse_classification_response, to_classified_activity
from .schemas import RawClassification


logger = structlog.get_logger(__name__)


@dataclass
class ClassifierConfig:
    """Batching and concurrency knobs for one classification pass."""

    strategy: str = STRATEGY_COUNT
    batch_size: int = DEFAULT_BATCH_SIZE
    proximity_gap: int = DEFAULT_PROXIMITY_GAP
    max_tokens: int = MAX_BATCH_TOKENS
    overhead_tokens: int = SYSTEM_PROMPT_TOKENS
    concurrency: int = 5
    ttl_seconds: Optional[int] = None
    home_country: Optional[str] = None
    timezone: Optional[str] = None
    estimator: Optional[Callable[[str], int]] = None

    @classmethod
    def from_settings(cls, config: Settings, **overrides) -> "ClassifierConfig":
        values = {
            "batch_size": config.batch_size,
            "proximity_gap": config.proximity_gap,
            "max_tokens": config.max_batch_tokens,
            "overhead_tokens": config.system_prompt_tokens,
            "concurrency": config.classification_concurrency,
            "ttl_seconds": config.classification_cache_ttl,
            "estimator": TokenEstimator(config.tokenizer_encoding),
        }
        values.update(overrides)
        return cls(**values)


@dataclass
class BatchError:
    """A failed batch and why it failed."""

    batch_index: int
    message_ids: List[int]
    error: ApiError


@dataclass
class ClassificationOutcome:
    """
    Merged result of a classification pass.

    activities holds every parsed item (activities and non-activities) in
    ascending message id order; filtering is the caller's decision.
    """

    activities: List[ClassifiedActivity] = field(default_factory=list)
    errors: List[BatchError] = field(default_factory=list)
    batch_count: int = 0
    cached_batches: int = 0

    @property
    def ok(self) -> bool:
        return not self.errors


def _classify_batch(
    batch: Batch,
    total: int,
    client: ClassifierClient,
    cache: Optional[ResponseCache],
    config: ClassifierConfig,
    observer,
) -> Tuple[Batch, Result, bool, int]:
    prompt = build_classification_prompt(batch.candidates, config.home_country, config.timezone)
    key = classifier_cache_key(client.provider, client.model, prompt)
    expected_ids = batch.message_ids
    hit = {"value": False}

    def on_check(cache_key: str, was_hit: bool) -> None:
        hit["value"] = was_hit
        if observer is not None:
            observer.cache_checked(cache_key, was_hit)
            observer.batch_started(batch.index, total, len(batch), was_hit)

    def call() -> Result:
        response = client.complete(prompt)
        if not response.ok:
            return response
        try:
            items = parse_classification_response(response.value, expected_ids)
        except ClassificationParseError as e:
            return Err(ApiError(kind=ApiErrorKind.INVALID_RESPONSE, message=str(e)))
        return Ok([item.model_dump(mode="json") for item in items])

    start = time.monotonic()
    if cache is None and observer is not None:
        observer.batch_started(batch.index, total, len(batch), False)

    # Only valid responses are cached; a failing batch is reissued next run
    result = cached_call(cache, key, call, ttl_seconds=config.ttl_seconds, on_check=on_check)
    duration_ms = int((time.monotonic() - start) * 1000)
    return batch, result, hit["value"], duration_ms


def _to_activities(batch: Batch, payload: Sequence[dict]) -> List[ClassifiedActivity]:
    by_id: Dict[int, Candidate] = {c.message_id: c for c in batch.candidates}
    activities = []
    for data in payload:
        raw = RawClassification.model_validate(data)
        candidate = by_id.get(raw.message_id)
        if candidate is None:
            logger.debug(
                "classification_unknown_message_id",
                batch_index=batch.index,
                message_id=raw.message_id,
            )
            continue
        activities.append(to_classified_activity(raw, candidate))
    return activities


def classify_candidates(
    candidates: Sequence[Candidate],
    client: ClassifierClient,
    cache: Optional[ResponseCache] = None,
    config: Optional[ClassifierConfig] = None,
    observer=None,
) -> ClassificationOutcome:
    """
    Classify candidates in batches.

    Args:
        candidates: Consolidated candidates
        client: Classifier client (no internal retries)
        cache: Request-level cache; identical batches are answered from it
        config: Batching/concurrency configuration
        observer: Optional PipelineObserver for batch and cache events

    Returns:
        ClassificationOutcome with merged activities and per-batch errors

    Examples:
        >>> outcome = classify_candidates(candidates, client, InMemoryResponseCache())
        >>> outcome.ok, outcome.batch_count
        (True, 1)
    """
    config = config or ClassifierConfig()
    batches = plan_batches(
        candidates,
        strategy=config.strategy,
        batch_size=config.batch_size,
        proximity_gap=config.proximity_gap,
        max_tokens=config.max_tokens,
        estimator=config.estimator,
        overhead_tokens=config.overhead_tokens,
    )
    outcome = ClassificationOutcome(batch_count=len(batches))
    if not batches:
        return outcome

    total = len(batches)
    log = logger.bind(provider=client.provider, model=client.model, batch_count=total)
    log.info("classification_started", candidate_count=len(candidates))

    per_message: Dict[int, List[ClassifiedActivity]] = {}
    with ThreadPoolExecutor(max_workers=max(1, config.concurrency)) as executor:
        futures = [
            executor.submit(_classify_batch, batch, total, client, cache, config, observer)
            for batch in batches
        ]
        for future in futures:
            batch, result, from_cache, duration_ms = future.result()
            if from_cache:
                outcome.cached_batches += 1

            if not result.ok:
                log.warning(
                    "classification_batch_failed",
                    batch_index=batch.index,
                    error_kind=result.error.kind.value,
                    error=result.error.message,
                )
                outcome.errors.append(BatchError(batch.index, batch.message_ids, result.error))
                continue

            activities = _to_activities(batch, result.value)
            for activity in activities:
                per_message.setdefault(activity.message_id, []).append(activity)

            if observer is not None:
                observer.batch_completed(batch.index, total, len(activities), duration_ms)

    outcome.activities = [a for message_id in sorted(per_message) for a in per_message[message_id]]

    log.info(
        "classification_completed",
        activity_count=len(outcome.activities),
        cached_batches=outcome.cached_batches,
        failed_batches=len(outcome.errors),
    )
    return outcome
