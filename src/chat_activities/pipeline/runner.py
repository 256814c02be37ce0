"""
Pipeline orchestrator.

Runs the stages in strict order, each consuming the previous stage's full
output:

    messages -> candidates.heuristics -> candidates.embeddings (optional)
    -> candidates.all -> scraped_urls (optional) -> classifications
    -> clusters -> geocodings (optional)

Every stage result is stored in the PipelineCache run for the input, so a
rerun on the same input resumes from the last completed stage. External
calls (semantic search, scraping, classification, geocoding) additionally go
through the request-level ResponseCache.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Type

import structlog

from ..aggregation.clustering import cluster_activities
from ..aggregation.filters import filter_activities, sort_activities_by_score
from ..batching.planner import STRATEGY_COUNT
from ..cache.backends import FilesystemResponseCache, ResponseCache
from ..cache.pipeline_cache import PipelineCache
from ..candidates.consolidator import consolidate
from ..classification.classifier import ClassifierConfig, classify_candidates
from ..classification.client import ClassifierClient
from ..config import Settings, settings
from ..models.activities import ClassifiedActivity, ClusterResult
from ..models.cache import PipelineRun
from ..models.candidates import Candidate
from ..models.geocoding import GeocodedActivity
from ..models.messages import Message
from ..models.results import ApiError, Result
from ..models.scraping import ScrapedMetadata
from ..scraper.enrich import Fetcher, enrich_candidates_with_metadata, scrape_and_enrich
from .events import NullObserver, PipelineObserver
from .geocode import Geocoder, calculate_geocode_stats, geocode_activities


logger = structlog.get_logger(__name__)

# Stage names
STAGE_MESSAGES = "messages"
STAGE_HEURISTICS = "candidates.heuristics"
STAGE_EMBEDDINGS = "candidates.embeddings"
STAGE_CANDIDATES = "candidates.all"
STAGE_FILTER_STATS = "filter_stats"
STAGE_SCRAPED_URLS = "scraped_urls"
STAGE_CLASSIFICATIONS = "classifications"
STAGE_CLASSIFY_STATS = "classify_stats"
STAGE_CLUSTERS = "clusters"
STAGE_GEOCODINGS = "geocodings"
STAGE_GEOCODE_STATS = "geocode_stats"

# Reasons a run stopped before the last stage
STOP_DRY_RUN = "dry_run"
STOP_NO_CANDIDATES = "no_candidates"
STOP_NO_ACTIVITIES = "no_activities"


class PipelineError(Exception):
    """A required stage failed."""

    def __init__(self, message: str, stage: str, error: Optional[ApiError] = None):
        super().__init__(message)
        self.stage = stage
        self.error = error


@dataclass
class PipelineCollaborators:
    """
    External collaborators the pipeline calls.

    Attributes:
        parse_messages: raw transcript text -> ordered Messages
        extract_heuristics: Messages -> pattern/URL candidates
        classifier: Classifier client; required unless running dry
        extract_semantic: Messages -> Result[list[Candidate]]; skipped when None
        fetch_url: async url -> Result[ScrapedMetadata]; scraping skipped when None
        geocode: (query, region) -> Result[GeocodeResult]; skipped when None
    """

    parse_messages: Callable[[str], Sequence[Message]]
    extract_heuristics: Callable[[Sequence[Message]], Sequence[Candidate]]
    classifier: Optional[ClassifierClient] = None
    extract_semantic: Optional[Callable[[Sequence[Message]], Result]] = None
    fetch_url: Optional[Fetcher] = None
    geocode: Optional[Geocoder] = None


@dataclass
class PipelineContext:
    """Caches, observer and configuration shared by all stages."""

    pipeline_cache: PipelineCache
    response_cache: Optional[ResponseCache] = None
    observer: PipelineObserver = field(default_factory=NullObserver)
    config: Settings = field(default_factory=lambda: settings)
    batch_strategy: str = STRATEGY_COUNT
    home_country: Optional[str] = None
    timezone: Optional[str] = None
    region_bias: Optional[str] = None

    @property
    def skip_cache(self) -> bool:
        return self.pipeline_cache.skip_cache

    @classmethod
    def from_settings(
        cls,
        config: Optional[Settings] = None,
        skip_cache: bool = False,
        observer: Optional[PipelineObserver] = None,
        **kwargs,
    ) -> "PipelineContext":
        """Filesystem-backed caches under config.cache_dir."""
        config = config or settings
        return cls(
            pipeline_cache=PipelineCache(config.cache_dir, skip_cache=skip_cache),
            response_cache=FilesystemResponseCache(config.cache_dir),
            observer=observer or NullObserver(),
            config=config,
            **kwargs,
        )


@dataclass
class PipelineResult:
    """Everything the run produced, plus where it stopped and why."""

    run: PipelineRun
    messages: List[Message] = field(default_factory=list)
    candidates: List[Candidate] = field(default_factory=list)
    activities: List[ClassifiedActivity] = field(default_factory=list)
    clusters: Optional[ClusterResult] = None
    geocoded: List[GeocodedActivity] = field(default_factory=list)
    stopped_reason: Optional[str] = None
    cached_stages: List[str] = field(default_factory=list)
    stats: Dict[str, Any] = field(default_factory=dict)

    @property
    def completed(self) -> bool:
        return self.stopped_reason is None


class _StageRunner:
    """Cache-or-compute wrapper around one run's stages."""

    def __init__(self, ctx: PipelineContext, result: PipelineResult):
        self.ctx = ctx
        self.result = result
        self.cache = ctx.pipeline_cache
        self.observer = ctx.observer

    def cached(self, name: str, type_: Optional[Type] = None) -> Any:
        if not self.cache.has_stage(name):
            return None
        value = self.cache.get_stage(name, type_)
        self.result.cached_stages.append(name)
        self.observer.stage_cached(name, _count(value))
        return value

    def run(self, name: str, type_: Optional[Type], compute: Callable[[], Any]) -> Any:
        self.observer.stage_started(name)
        value = self.cached(name, type_)
        if value is not None:
            return value

        start = time.monotonic()
        value = compute()
        self.cache.set_stage(name, value)
        self.observer.stage_completed(name, _count(value), int((time.monotonic() - start) * 1000))
        return value


def _count(value: Any) -> int:
    if isinstance(value, ClusterResult):
        return len(value.clusters)
    try:
        return len(value)
    except TypeError:
        return 1


def run_pipeline(
    ctx: PipelineContext,
    content: str,
    source_name: str,
    collaborators: PipelineCollaborators,
    dry_run: bool = False,
) -> PipelineResult:
    """
    Run the full pipeline for one transcript.

    Synchronous; the scrape stage drives its own event loop, so this must not
    be called from inside a running loop.

    Args:
        ctx: Caches, observer and settings
        content: Raw transcript text
        source_name: Input name, used for the run directory
        collaborators: Parser, extractors, classifier, fetcher, geocoder
        dry_run: Stop after the cheap, non-network stages (messages,
            heuristic candidates, consolidation); never scrapes, classifies
            or geocodes

    Returns:
        PipelineResult; `stopped_reason` is set when the run ended early
        (dry run, no candidates, no activities)

    Raises:
        PipelineError: If any classification batch failed; successful batches
            stay in the request cache so a rerun only reissues failed ones
        ValueError: If no classifier is given for a non-dry run
    """
    if not dry_run and collaborators.classifier is None:
        raise ValueError("A classifier client is required unless dry_run=True")

    config = ctx.config
    run = ctx.pipeline_cache.get_or_create_run(source_name, content)
    result = PipelineResult(run=run)
    stages = _StageRunner(ctx, result)
    log = logger.bind(run_id=run.run_id)
    log.info("pipeline_started", source_name=source_name, dry_run=dry_run, skip_cache=ctx.skip_cache)

    # Cheap, local stages
    messages = stages.run(
        STAGE_MESSAGES,
        List[Message],
        lambda: list(collaborators.parse_messages(content)),
    )
    result.messages = messages

    heuristics = stages.run(
        STAGE_HEURISTICS,
        List[Candidate],
        lambda: list(collaborators.extract_heuristics(messages)),
    )

    semantic = _semantic_stage(stages, collaborators, messages, log)

    def consolidate_stage() -> List[Candidate]:
        consolidation = consolidate(heuristics, semantic, config.agreement_proximity)
        ctx.pipeline_cache.set_stage(
            STAGE_FILTER_STATS,
            {
                "total": consolidation.total_unique,
                "heuristics": consolidation.heuristic_count,
                "embeddings": consolidation.semantic_count,
                "agreementsRemoved": consolidation.agreements_removed,
            },
        )
        return consolidation.candidates

    candidates = stages.run(STAGE_CANDIDATES, List[Candidate], consolidate_stage)
    result.candidates = candidates
    result.stats[STAGE_FILTER_STATS] = ctx.pipeline_cache.get_stage(STAGE_FILTER_STATS)

    if not candidates:
        return _stop(result, STOP_NO_CANDIDATES, log)
    if dry_run:
        return _stop(result, STOP_DRY_RUN, log)

    # Network stages
    if collaborators.fetch_url is not None:
        candidates = _scrape_stage(stages, ctx, collaborators.fetch_url, candidates)

    activities = _classify_stage(stages, ctx, collaborators.classifier, candidates, log)
    result.activities = activities
    result.stats[STAGE_CLASSIFY_STATS] = ctx.pipeline_cache.get_stage(STAGE_CLASSIFY_STATS)

    if not activities:
        return _stop(result, STOP_NO_ACTIVITIES, log)

    result.clusters = stages.run(
        STAGE_CLUSTERS,
        ClusterResult,
        lambda: cluster_activities(activities),
    )

    if collaborators.geocode is not None:
        result.geocoded = _geocode_stage(stages, ctx, collaborators.geocode, activities)
        result.stats[STAGE_GEOCODE_STATS] = ctx.pipeline_cache.get_stage(STAGE_GEOCODE_STATS)

    log.info(
        "pipeline_completed",
        candidate_count=len(candidates),
        activity_count=len(activities),
        cluster_count=len(result.clusters.clusters),
        cached_stages=len(result.cached_stages),
    )
    return result


def _stop(result: PipelineResult, reason: str, log) -> PipelineResult:
    result.stopped_reason = reason
    log.info("pipeline_stopped", reason=reason, candidate_count=len(result.candidates))
    return result


def _semantic_stage(stages: _StageRunner, collaborators, messages, log) -> List[Candidate]:
    if collaborators.extract_semantic is None:
        return []

    stages.observer.stage_started(STAGE_EMBEDDINGS)
    cached = stages.cached(STAGE_EMBEDDINGS, List[Candidate])
    if cached is not None:
        return cached

    start = time.monotonic()
    extracted = collaborators.extract_semantic(messages)
    if not extracted.ok:
        # Whole stage aborts; the run continues on heuristics alone and the
        # stage is retried next time
        log.warning("semantic_stage_failed", error=str(extracted.error))
        stages.observer.stage_failed(STAGE_EMBEDDINGS, str(extracted.error))
        return []

    semantic = list(extracted.value)
    stages.cache.set_stage(STAGE_EMBEDDINGS, semantic)
    stages.observer.stage_completed(STAGE_EMBEDDINGS, len(semantic), int((time.monotonic() - start) * 1000))
    return semantic


def _scrape_stage(
    stages: _StageRunner, ctx: PipelineContext, fetch: Fetcher, candidates: List[Candidate]
) -> List[Candidate]:
    config = ctx.config
    stages.observer.stage_started(STAGE_SCRAPED_URLS)
    metadata = stages.cached(STAGE_SCRAPED_URLS, Dict[str, ScrapedMetadata])

    if metadata is None:
        start = time.monotonic()
        enrichment = asyncio.run(
            scrape_and_enrich(
                candidates,
                fetch,
                cache=ctx.response_cache,
                concurrency=config.scrape_concurrency,
                timeout=config.scrape_timeout_seconds,
                observer=ctx.observer,
                ttl_seconds=config.scrape_cache_ttl,
                error_ttl_seconds=config.scrape_error_cache_ttl,
            )
        )
        metadata = enrichment.metadata
        stages.cache.set_stage(STAGE_SCRAPED_URLS, metadata)
        stages.observer.stage_completed(
            STAGE_SCRAPED_URLS, len(metadata), int((time.monotonic() - start) * 1000)
        )

    if not metadata:
        return candidates
    return enrich_candidates_with_metadata(candidates, metadata)


def _classify_stage(
    stages: _StageRunner,
    ctx: PipelineContext,
    client: ClassifierClient,
    candidates: List[Candidate],
    log,
) -> List[ClassifiedActivity]:
    config = ctx.config

    def compute() -> List[ClassifiedActivity]:
        classifier_config = ClassifierConfig.from_settings(
            config,
            strategy=ctx.batch_strategy,
            home_country=ctx.home_country,
            timezone=ctx.timezone,
        )
        outcome = classify_candidates(
            candidates, client, ctx.response_cache, classifier_config, ctx.observer
        )
        if not outcome.ok:
            first = outcome.errors[0]
            log.error(
                "classification_failed",
                failed_batches=len(outcome.errors),
                batch_count=outcome.batch_count,
                error_kind=first.error.kind.value,
            )
            stages.observer.stage_failed(STAGE_CLASSIFICATIONS, str(first.error))
            raise PipelineError(
                f"Classification failed for {len(outcome.errors)}/{outcome.batch_count} batches: "
                f"{first.error}",
                stage=STAGE_CLASSIFICATIONS,
                error=first.error,
            )

        activities = sort_activities_by_score(
            filter_activities(outcome.activities, config.min_activity_score)
        )
        stages.cache.set_stage(
            STAGE_CLASSIFY_STATS,
            {
                "candidatesClassified": len(candidates),
                "activitiesFound": len(activities),
                "model": client.model,
                "provider": client.provider,
                "batchCount": outcome.batch_count,
                "cachedBatches": outcome.cached_batches,
            },
        )
        return activities

    return stages.run(STAGE_CLASSIFICATIONS, List[ClassifiedActivity], compute)


def _geocode_stage(
    stages: _StageRunner,
    ctx: PipelineContext,
    geocode: Geocoder,
    activities: List[ClassifiedActivity],
) -> List[GeocodedActivity]:
    def compute() -> List[GeocodedActivity]:
        geocoded = geocode_activities(
            activities,
            geocode,
            cache=ctx.response_cache,
            region=ctx.region_bias,
            ttl_seconds=ctx.config.geocode_cache_ttl,
            observer=ctx.observer,
        )
        stages.cache.set_stage(STAGE_GEOCODE_STATS, calculate_geocode_stats(geocoded))
        return geocoded

    return stages.run(STAGE_GEOCODINGS, List[GeocodedActivity], compute)
