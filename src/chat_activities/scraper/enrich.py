"""
Context enrichment with scraped URL metadata.

URLs found in candidate contexts are scraped and their metadata injected
inline, one `[URL_META: {...}]` line after each URL, so the classifier can
tell what a shared link is about.

Scraping is best-effort: bounded concurrency, a hard timeout per URL, and
both successes and failures cached in the request cache. A failed URL simply
gets no metadata.
"""

import asyncio
import json
import re
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Mapping, Optional, Sequence

import structlog

from ..cache.backends import ResponseCache
from ..cache.keys import url_cache_key
from ..cache.request_cache import encode_result, read_cached_result
from ..models.candidates import Candidate
from ..models.results import ApiError, ApiErrorKind, Err, Ok, Result
from ..models.scraping import ScrapedMetadata


logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 4.0
DEFAULT_CONCURRENCY = 5
SCRAPE_CACHE_TTL_SECONDS = 24 * 60 * 60
SCRAPE_ERROR_CACHE_TTL_SECONDS = 60 * 60

DESCRIPTION_MAX_CHARS = 200

URL_PATTERN = re.compile(r"https?://[^\s<>\"{}|\\^`\[\]]+")

Fetcher = Callable[[str], Awaitable[Result]]


def extract_urls_from_text(text: str) -> List[str]:
    """
    Unique URLs in order of first appearance.

    Examples:
        >>> extract_urls_from_text("see https://a.com and https://a.com")
        ['https://a.com']
    """
    return list(dict.fromkeys(URL_PATTERN.findall(text)))


def extract_urls_from_candidates(candidates: Sequence[Candidate]) -> List[str]:
    """Unique URLs across candidate contexts (or content when no context)."""
    urls: Dict[str, None] = {}
    for candidate in candidates:
        for url in extract_urls_from_text(candidate.context or candidate.content):
            urls.setdefault(url, None)
    return list(urls)


def format_metadata_json(metadata: ScrapedMetadata) -> str:
    """Compact JSON with only the populated fields."""
    data = {"platform": metadata.platform}
    if metadata.title:
        data["title"] = metadata.title
    if metadata.description:
        data["description"] = metadata.description[:DESCRIPTION_MAX_CHARS]
    if metadata.creator:
        data["creator"] = metadata.creator
    if metadata.categories:
        data["categories"] = metadata.categories
    return json.dumps(data, ensure_ascii=False, separators=(",", ":"))


def inject_metadata_into_text(text: str, metadata: Mapping[str, ScrapedMetadata]) -> str:
    """
    Insert a `[URL_META: {...}]` line right after every URL with metadata.

    Examples:
        >>> inject_metadata_into_text("go https://a.com now", {"https://a.com": meta})
        'go https://a.com\\n[URL_META: {"platform":"website","title":"A"}] now'
    """
    parts = []
    last = 0
    for match in URL_PATTERN.finditer(text):
        url = match.group(0)
        if url not in metadata:
            continue
        parts.append(text[last : match.end()])
        parts.append(f"\n[URL_META: {format_metadata_json(metadata[url])}]")
        last = match.end()
    if not parts:
        return text
    parts.append(text[last:])
    return "".join(parts)


def enrich_candidates_with_metadata(
    candidates: Sequence[Candidate], metadata: Mapping[str, ScrapedMetadata]
) -> List[Candidate]:
    """
    Return copies of the candidates with metadata injected into their context.

    Candidates without a context get the ">>> sender: content" fallback first.
    """
    enriched = []
    for candidate in candidates:
        context = candidate.context or f">>> {candidate.sender}: {candidate.content}"
        enriched.append(
            candidate.model_copy(update={"context": inject_metadata_into_text(context, metadata)})
        )
    return enriched


@dataclass
class EnrichmentResult:
    """Enriched candidates plus the metadata that was found."""

    candidates: List[Candidate]
    metadata: Dict[str, ScrapedMetadata] = field(default_factory=dict)
    scraped_count: int = 0
    cached_count: int = 0
    failed_count: int = 0


async def _scrape_one(url: str, fetch: Fetcher, timeout: float) -> Result:
    try:
        return await asyncio.wait_for(fetch(url), timeout=timeout)
    except asyncio.TimeoutError:
        return Err(ApiError(kind=ApiErrorKind.NETWORK, message=f"Timeout after {timeout}s"))
    except Exception as e:
        # Fetcher errors of any type count as a failed URL
        logger.warning("url_fetch_raised", url=url, error=str(e), error_type=type(e).__name__)
        return Err(ApiError(kind=ApiErrorKind.NETWORK, message=str(e) or type(e).__name__))


async def scrape_and_enrich(
    candidates: Sequence[Candidate],
    fetch: Fetcher,
    cache: Optional[ResponseCache] = None,
    concurrency: int = DEFAULT_CONCURRENCY,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    observer=None,
    ttl_seconds: int = SCRAPE_CACHE_TTL_SECONDS,
    error_ttl_seconds: int = SCRAPE_ERROR_CACHE_TTL_SECONDS,
) -> EnrichmentResult:
    """
    Scrape every URL in the candidates and inject the metadata.

    Args:
        candidates: Consolidated candidates
        fetch: async url -> Ok(ScrapedMetadata) | Err(ApiError)
        cache: Request-level cache for scrape results
        concurrency: Maximum simultaneous fetches
        timeout: Hard timeout per URL, seconds
        observer: Optional PipelineObserver (cache_checked, url_scraped)
        ttl_seconds: Cache TTL for successes
        error_ttl_seconds: Cache TTL for failures

    Returns:
        EnrichmentResult; candidates are unchanged copies when no URL
        yields metadata
    """
    urls = extract_urls_from_candidates(candidates)
    if not urls:
        return EnrichmentResult(candidates=list(candidates))

    result = EnrichmentResult(candidates=[])
    uncached: List[str] = []

    for url in urls:
        key = url_cache_key(url)
        cached = read_cached_result(cache, key) if cache is not None else None
        if observer is not None and cache is not None:
            observer.cache_checked(key, cached is not None)
        if cached is None:
            uncached.append(url)
            continue
        result.cached_count += 1
        if cached.ok:
            result.metadata[url] = ScrapedMetadata.model_validate(cached.value)

    semaphore = asyncio.Semaphore(max(1, concurrency))
    completed = 0

    async def worker(url: str) -> None:
        nonlocal completed
        async with semaphore:
            scraped = await _scrape_one(url, fetch, timeout)

        completed += 1
        if scraped.ok:
            result.metadata[url] = scraped.value
            result.scraped_count += 1
            if cache is not None:
                payload = Ok(scraped.value.model_dump(mode="json"))
                cache.put(url_cache_key(url), encode_result(payload), ttl_seconds)
        else:
            result.failed_count += 1
            logger.debug("url_scrape_failed", url=url, error=str(scraped.error))
            if cache is not None:
                cache.put(url_cache_key(url), encode_result(scraped), error_ttl_seconds)

        if observer is not None:
            observer.url_scraped(
                url,
                scraped.ok,
                None if scraped.ok else scraped.error.message,
                completed,
                len(uncached),
            )

    if uncached:
        start = time.monotonic()
        logger.info("url_scrape_started", url_count=len(uncached), cached_count=result.cached_count)
        await asyncio.gather(*(worker(url) for url in uncached))
        logger.info(
            "url_scrape_completed",
            scraped=result.scraped_count,
            failed=result.failed_count,
            duration_ms=int((time.monotonic() - start) * 1000),
        )

    # Deterministic order regardless of completion order
    result.metadata = {url: result.metadata[url] for url in urls if url in result.metadata}
    result.candidates = enrich_candidates_with_metadata(candidates, result.metadata)
    return result