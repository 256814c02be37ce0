"""
Request-level cache backends.

Any backend satisfying get(key) / set(key, response, ttl) can back the request
cache: in-memory for tests and one-off runs, filesystem for the CLI, SQL
(see sql_backend) for shared deployments.
"""

import json
import os
import tempfile
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Union

import structlog

from ..models.cache import CachedResponse


logger = structlog.get_logger(__name__)


class ResponseCache(ABC):
    """Pluggable key/value store for external API responses."""

    @abstractmethod
    def get(self, key: str) -> Optional[CachedResponse]:
        """
        Look up a cached response.

        Returns:
            The entry, or None when absent or expired
        """

    @abstractmethod
    def set(self, key: str, response: CachedResponse, ttl_seconds: Optional[int] = None) -> None:
        """Store a response; ttl_seconds=None means no expiry."""

    def put(self, key: str, data: Any, ttl_seconds: Optional[int] = None) -> None:
        """Store `data` stamped with the current time."""
        self.set(key, CachedResponse(data=data, cached_at=time.time()), ttl_seconds)


class InMemoryResponseCache(ResponseCache):
    """Process-local cache; entries vanish with the process."""

    def __init__(self):
        self._entries: Dict[str, CachedResponse] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[CachedResponse]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired():
                del self._entries[key]
                return None
            return entry

    def set(self, key: str, response: CachedResponse, ttl_seconds: Optional[int] = None) -> None:
        with self._lock:
            self._entries[key] = response.model_copy(update={"ttl_seconds": ttl_seconds})

    def __len__(self) -> int:
        return len(self._entries)


def atomic_write_text(path: Path, text: str) -> None:
    """
    Write a file so readers see either the old or the new content.

    Concurrent writers race; the last os.replace wins.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class FilesystemResponseCache(ResponseCache):
    """
    JSON-file cache under <cache_dir>/requests/<key[:2]>/<key>.json.

    Shared across pipeline runs.
    """

    def __init__(self, cache_dir: Union[str, Path]):
        self.root = Path(cache_dir).expanduser() / "requests"

    def _path(self, key: str) -> Path:
        return self.root / key[:2] / f"{key}.json"

    def get(self, key: str) -> Optional[CachedResponse]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            entry = CachedResponse.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("response_cache_entry_unreadable", key=key, error=str(e))
            return None
        if entry.is_expired():
            logger.debug("response_cache_entry_expired", key=key)
            return None
        return entry

    def set(self, key: str, response: CachedResponse, ttl_seconds: Optional[int] = None) -> None:
        entry = response.model_copy(update={"ttl_seconds": ttl_seconds})
        atomic_write_text(
            self._path(key),
            json.dumps(entry.model_dump(mode="json", by_alias=True), ensure_ascii=False),
        )
