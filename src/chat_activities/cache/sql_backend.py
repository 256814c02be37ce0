"""
SQL-backed request cache.

Stores request cache entries in a single table through SQLAlchemy, so several
processes (or machines) can share memoized classifier and geocoder responses.
SQLite is the default; any SQLAlchemy URL works.
"""

import json
import time
from contextlib import contextmanager
from typing import Generator, Optional

import structlog
from sqlalchemy import Column, Float, Integer, String, Text, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from ..models.cache import CachedResponse
from .backends import ResponseCache


logger = structlog.get_logger(__name__)

Base = declarative_base()


class ResponseCacheEntry(Base):
    """One cached external response."""

    __tablename__ = "response_cache"

    key = Column(String(64), primary_key=True)
    payload = Column(Text, nullable=False)  # JSON-encoded data
    cached_at = Column(Float, nullable=False)  # epoch seconds
    ttl_seconds = Column(Integer, nullable=True)  # NULL = no expiry

    def __repr__(self):
        return f"<ResponseCacheEntry(key={self.key[:12]}, cached_at={self.cached_at})>"


class SQLResponseCache(ResponseCache):
    """
    Request cache persisted in a SQL table.

    The engine is owned by the instance; construct one per process and pass
    it to the pipeline.
    """

    def __init__(self, url: str = "sqlite:///response_cache.db", engine: Optional[Engine] = None):
        self.engine = engine or create_engine(url, pool_pre_ping=True)
        self._session_factory = sessionmaker(bind=self.engine)
        Base.metadata.create_all(self.engine)
        logger.info("response_cache_db_ready", database=self.engine.url.database)

    @contextmanager
    def _session(self) -> Generator[Session, None, None]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error("response_cache_db_rollback", error=str(e), error_type=type(e).__name__)
            raise
        finally:
            session.close()

    def get(self, key: str) -> Optional[CachedResponse]:
        with self._session() as session:
            row = session.get(ResponseCacheEntry, key)
            if row is None:
                return None
            entry = CachedResponse(
                data=json.loads(row.payload),
                cached_at=row.cached_at,
                ttl_seconds=row.ttl_seconds,
            )
        if entry.is_expired():
            return None
        return entry

    def set(self, key: str, response: CachedResponse, ttl_seconds: Optional[int] = None) -> None:
        with self._session() as session:
            session.merge(
                ResponseCacheEntry(
                    key=key,
                    payload=json.dumps(response.data, ensure_ascii=False),
                    cached_at=response.cached_at,
                    ttl_seconds=ttl_seconds,
                )
            )

    def purge_expired(self, now: Optional[float] = None) -> int:
        """
        Delete expired entries.

        Returns:
            Number of rows deleted
        """
        now = time.time() if now is None else now
        with self._session() as session:
            expired = [
                row
                for row in session.query(ResponseCacheEntry)
                .filter(ResponseCacheEntry.ttl_seconds.isnot(None))
                .all()
                if now - row.cached_at >= row.ttl_seconds
            ]
            for row in expired:
                session.delete(row)
        logger.info("response_cache_purged", deleted=len(expired))
        return len(expired)
