"""
Pipeline progress events.

Orchestration code reports progress and cache hits through a
PipelineObserver passed in by the caller. Pure computations never see it.
Observers may be called from worker threads (classification batches).
"""

from typing import Optional

import structlog


logger = structlog.get_logger(__name__)


class PipelineObserver:
    """
    Event sink for pipeline progress.

    Every hook is a no-op; subclasses override what they care about.
    """

    def stage_started(self, stage: str) -> None:
        pass

    def stage_completed(self, stage: str, count: int, duration_ms: int) -> None:
        pass

    def stage_cached(self, stage: str, count: int) -> None:
        pass

    def stage_failed(self, stage: str, error: str) -> None:
        pass

    def batch_started(self, batch_index: int, total: int, candidate_count: int, from_cache: bool) -> None:
        pass

    def batch_completed(self, batch_index: int, total: int, activity_count: int, duration_ms: int) -> None:
        pass

    def cache_checked(self, key: str, hit: bool) -> None:
        pass

    def url_scraped(
        self, url: str, success: bool, error: Optional[str], current: int, total: int
    ) -> None:
        pass


class NullObserver(PipelineObserver):
    """Discards every event."""


class LoggingObserver(PipelineObserver):
    """Logs every event through structlog."""

    def __init__(self, run_id: Optional[str] = None):
        self.logger = logger.bind(run_id=run_id) if run_id else logger

    def stage_started(self, stage: str) -> None:
        self.logger.info("stage_started", stage=stage)

    def stage_completed(self, stage: str, count: int, duration_ms: int) -> None:
        self.logger.info("stage_completed", stage=stage, count=count, duration_ms=duration_ms)

    def stage_cached(self, stage: str, count: int) -> None:
        self.logger.info("stage_cached", stage=stage, count=count)

    def stage_failed(self, stage: str, error: str) -> None:
        self.logger.warning("stage_failed", stage=stage, error=error)

    def batch_started(self, batch_index: int, total: int, candidate_count: int, from_cache: bool) -> None:
        self.logger.info(
            "batch_started",
            batch=f"{batch_index + 1}/{total}",
            candidate_count=candidate_count,
            from_cache=from_cache,
        )

    def batch_completed(self, batch_index: int, total: int, activity_count: int, duration_ms: int) -> None:
        self.logger.info(
            "batch_completed",
            batch=f"{batch_index + 1}/{total}",
            activity_count=activity_count,
            duration_ms=duration_ms,
        )

    def cache_checked(self, key: str, hit: bool) -> None:
        self.logger.debug("cache_checked", key=key[:16], hit=hit)

    def url_scraped(
        self, url: str, success: bool, error: Optional[str], current: int, total: int
    ) -> None:
        self.logger.debug(
            "url_scraped",
            url=url,
            success=success,
            error=error,
            progress=f"{current}/{total}",
        )
