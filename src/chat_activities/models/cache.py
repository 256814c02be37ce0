"""
Cache metadata models: pipeline runs and request-level cache entries.
"""

import time
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import Field

from .base import FrozenCamelModel


class PipelineRun(FrozenCamelModel):
    """
    One pipeline run, identified by the digest of its input.

    Created lazily on first ingestion of an input; otherwise immutable.
    """

    run_id: str = Field(description="Directory name: <sanitized-source>-<hash8>")
    input_hash: str = Field(description="SHA-256 of input bytes or of file name + mtime")
    source_name: str
    created_at: datetime
    run_dir: str
    versions: Dict[str, str] = Field(default_factory=dict, description="Component versions at creation")


class CachedResponse(FrozenCamelModel):
    """A request-scoped cache entry."""

    data: Any
    cached_at: float = Field(description="Epoch seconds when written")
    ttl_seconds: Optional[int] = Field(default=None, description="None means no expiry")

    def is_expired(self, now: Optional[float] = None) -> bool:
        if self.ttl_seconds is None:
            return False
        now = time.time() if now is None else now
        return now - self.cached_at >= self.ttl_seconds
