"""
Staged pipeline orchestration.
"""

from .events import LoggingObserver, NullObserver, PipelineObserver
from .geocode import calculate_geocode_stats, geocode_activities
from .runner import (
    PipelineCollaborators,
    PipelineContext,
    PipelineError,
    PipelineResult,
    run_pipeline,
)

__all__ = [
    "LoggingObserver",
    "NullObserver",
    "PipelineCollaborators",
    "PipelineContext",
    "PipelineError",
    "PipelineObserver",
    "PipelineResult",
    "calculate_geocode_stats",
    "geocode_activities",
    "run_pipeline",
]
