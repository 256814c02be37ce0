"""
Caching: staged pipeline cache and request-level response cache.
"""

from .backends import FilesystemResponseCache, InMemoryResponseCache, ResponseCache
from .keys import (
    classifier_cache_key,
    embedding_cache_key,
    generate_cache_key,
    geocode_cache_key,
    hash_content,
    hash_file_identity,
    url_cache_key,
)
from .pipeline_cache import PipelineCache
from .request_cache import cached_call
from .sql_backend import SQLResponseCache

__all__ = [
    "FilesystemResponseCache",
    "InMemoryResponseCache",
    "PipelineCache",
    "ResponseCache",
    "SQLResponseCache",
    "cached_call",
    "classifier_cache_key",
    "embedding_cache_key",
    "generate_cache_key",
    "geocode_cache_key",
    "hash_content",
    "hash_file_identity",
    "url_cache_key",
]
