"""
Data models for the activity extraction pipeline.
"""

from .activities import (
    ActivityCategory,
    ActivityCluster,
    ClassifiedActivity,
    ClusterResult,
    combined_score,
    round_half_up,
)
from .cache import CachedResponse, PipelineRun
from .geocoding import GeocodedActivity, GeocodeResult
from .candidates import (
    Batch,
    Candidate,
    CandidateKind,
    CandidateSource,
    PatternSource,
    SemanticSource,
    UrlSource,
)
from .messages import Message, SourceMessage
from .scraping import ScrapedMetadata
from .results import ApiError, ApiErrorKind, Err, Ok, Result

__all__ = [
    "ActivityCategory",
    "ActivityCluster",
    "ApiError",
    "ApiErrorKind",
    "Batch",
    "CachedResponse",
    "Candidate",
    "CandidateKind",
    "CandidateSource",
    "ClassifiedActivity",
    "ClusterResult",
    "Err",
    "GeocodeResult",
    "GeocodedActivity",
    "Message",
    "Ok",
    "PatternSource",
    "PipelineRun",
    "Result",
    "ScrapedMetadata",
    "SemanticSource",
    "SourceMessage",
    "UrlSource",
    "combined_score",
    "round_half_up",
]
