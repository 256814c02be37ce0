"""
Request-level memoization of external calls.

Wraps a call returning a Result so that repeating the same request inside the
TTL returns the cached answer. Failures can be cached too, with a shorter TTL,
so a failing endpoint is not hammered on every run.
"""

from typing import Any, Callable, Optional

import structlog

from ..models.results import ApiError, Err, Ok, Result
from .backends import ResponseCache


logger = structlog.get_logger(__name__)

CacheCheckCallback = Callable[[str, bool], None]


class InvalidCacheEntry(ValueError):
    """A cached entry is not an encode_result envelope."""


def encode_result(result: Result) -> dict:
    """
    Wrap a Result in the envelope stored under request-cache keys.

    Every entry read back through decode_result must have been written with
    this envelope; a bare payload is never interpreted.
    """
    if result.ok:
        return {"ok": True, "value": result.value}
    return {"ok": False, "error": result.error.model_dump(mode="json")}


def decode_result(data: Any) -> Result:
    """
    Unwrap an encode_result envelope.

    Raises:
        InvalidCacheEntry: If `data` is not exactly an Ok or Err envelope
    """
    if isinstance(data, dict) and data.keys() == {"ok", "error"} and data["ok"] is False:
        return Err(ApiError.model_validate(data["error"]))
    if isinstance(data, dict) and data.keys() == {"ok", "value"} and data["ok"] is True:
        return Ok(data["value"])
    raise InvalidCacheEntry(f"Not a cached result envelope: {type(data).__name__}")


def read_cached_result(cache: ResponseCache, key: str) -> Optional[Result]:
    """
    Cached Result for `key`, or None when absent, expired or not an envelope.
    """
    entry = cache.get(key)
    if entry is None:
        return None
    try:
        return decode_result(entry.data)
    except InvalidCacheEntry as e:
        logger.warning("request_cache_entry_invalid", key=key[:16], error=str(e))
        return None


def cached_call(
    cache: Optional[ResponseCache],
    key: str,
    fn: Callable[[], Result],
    ttl_seconds: Optional[int] = None,
    failure_ttl_seconds: Optional[int] = None,
    on_check: Optional[CacheCheckCallback] = None,
) -> Result:
    """
    Return the cached result for `key`, or call `fn` and cache its result.

    Args:
        cache: Backend, or None to always call through
        key: Deterministic request key (see cache.keys)
        fn: Zero-argument callable returning Ok/Err
        ttl_seconds: TTL for successful results (None = no expiry)
        failure_ttl_seconds: TTL for failures; failures are not cached when None
        on_check: Called with (key, hit) after the cache lookup

    Returns:
        Ok(payload) or Err(ApiError), from cache or from the call
    """
    if cache is not None:
        cached = read_cached_result(cache, key)
        hit = cached is not None
        if on_check is not None:
            on_check(key, hit)
        if hit:
            logger.debug("request_cache_hit", key=key[:16])
            return cached
        logger.debug("request_cache_miss", key=key[:16])

    result = fn()

    if cache is not None:
        if result.ok:
            cache.put(key, encode_result(result), ttl_seconds)
        elif failure_ttl_seconds is not None:
            cache.put(key, encode_result(result), failure_ttl_seconds)

    return result
