"""
Default page metadata fetcher built on httpx.

Reads the page <title> and OpenGraph tags. Failures come back as Err so the
enrichment step can treat them as "no metadata".
"""

import html
import re
from typing import Optional
from urllib.parse import urlparse

import httpx
import structlog

from ..models.results import ApiError, ApiErrorKind, Err, Ok, Result
from ..models.scraping import ScrapedMetadata


logger = structlog.get_logger(__name__)

DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; chat-activities/1.0)"

# Only the head is needed for title and meta tags
MAX_HTML_CHARS = 200_000

PLATFORM_HOSTS = {
    "youtube.com": "youtube",
    "youtu.be": "youtube",
    "instagram.com": "instagram",
    "tiktok.com": "tiktok",
    "airbnb.com": "airbnb",
    "booking.com": "booking",
    "tripadvisor.com": "tripadvisor",
    "eventbrite.com": "eventbrite",
    "facebook.com": "facebook",
    "goo.gl": "google_maps",
    "maps.app.goo.gl": "google_maps",
}

_TITLE_RE = re.compile(r"<title[^>]*>(.*?)</title>", re.IGNORECASE | re.DOTALL)
_META_RE = re.compile(r"<meta\s+[^>]*>", re.IGNORECASE)
_ATTR_RE = re.compile(r"""([a-zA-Z:_-]+)\s*=\s*("([^"]*)"|'([^']*)')""")


def detect_platform(url: str) -> str:
    """
    Platform name for a URL.

    Examples:
        >>> detect_platform("https://www.youtube.com/watch?v=abc")
        'youtube'
        >>> detect_platform("https://example.com/")
        'website'
    """
    host = (urlparse(url).hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    if "google." in host and "/maps" in url:
        return "google_maps"
    for domain, platform in PLATFORM_HOSTS.items():
        if host == domain or host.endswith("." + domain):
            return platform
    return "website"


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    text = re.sub(r"\s+", " ", html.unescape(value)).strip()
    return text or None


def parse_page_metadata(url: str, page: str) -> ScrapedMetadata:
    """
    Extract metadata from HTML.

    OpenGraph title/description win over <title> and the plain description
    meta tag.
    """
    page = page[:MAX_HTML_CHARS]
    meta = {}
    for tag in _META_RE.findall(page):
        attrs = {}
        for m in _ATTR_RE.finditer(tag):
            attrs[m.group(1).lower()] = m.group(3) if m.group(3) is not None else m.group(4)
        name = (attrs.get("property") or attrs.get("name") or "").lower()
        if name and "content" in attrs and name not in meta:
            meta[name] = attrs["content"]

    title_match = _TITLE_RE.search(page)
    title = _clean(meta.get("og:title")) or _clean(title_match.group(1) if title_match else None)
    description = _clean(meta.get("og:description")) or _clean(meta.get("description"))
    creator = _clean(meta.get("author")) or _clean(meta.get("og:site_name"))

    return ScrapedMetadata(
        url=url,
        platform=detect_platform(url),
        title=title,
        description=description,
        creator=creator,
    )


def _status_error(status_code: int, url: str) -> ApiError:
    message = f"HTTP {status_code} fetching {url}"
    if status_code == 429:
        return ApiError(kind=ApiErrorKind.RATE_LIMIT, message=message)
    if status_code in (401, 403):
        return ApiError(kind=ApiErrorKind.AUTH, message=message)
    if 400 <= status_code < 500:
        return ApiError(kind=ApiErrorKind.INVALID_REQUEST, message=message)
    return ApiError(kind=ApiErrorKind.NETWORK, message=message)


async def fetch_page_metadata(
    url: str,
    client: httpx.AsyncClient,
    user_agent: str = DEFAULT_USER_AGENT,
) -> Result:
    """
    Fetch a URL and extract its metadata.

    Args:
        url: Page URL
        client: Shared httpx.AsyncClient
        user_agent: User-Agent header

    Returns:
        Ok(ScrapedMetadata) or Err(ApiError)
    """
    try:
        response = await client.get(url, headers={"User-Agent": user_agent}, follow_redirects=True)
    except httpx.InvalidURL as e:
        logger.debug("page_url_invalid", url=url, error=str(e))
        return Err(ApiError(kind=ApiErrorKind.INVALID_REQUEST, message=str(e) or type(e).__name__))
    except httpx.RequestError as e:
        logger.debug("page_fetch_failed", url=url, error=str(e))
        return Err(ApiError(kind=ApiErrorKind.NETWORK, message=str(e) or type(e).__name__))

    if response.status_code >= 400:
        return Err(_status_error(response.status_code, url))

    content_type = response.headers.get("content-type", "")
    if content_type and "html" not in content_type:
        return Ok(ScrapedMetadata(url=url, platform=detect_platform(url)))

    return Ok(parse_page_metadata(url, response.text))


def create_http_fetcher(client: httpx.AsyncClient, user_agent: str = DEFAULT_USER_AGENT):
    """Bind an httpx client into a `fetch(url) -> Result` coroutine function."""

    async def fetch(url: str) -> Result:
        return await fetch_page_metadata(url, client, user_agent)

    return fetch
