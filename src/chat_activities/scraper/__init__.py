"""
URL metadata scraping and candidate context enrichment.
"""

from .enrich import (
    EnrichmentResult,
    enrich_candidates_with_metadata,
    extract_urls_from_candidates,
    extract_urls_from_text,
    inject_metadata_into_text,
    scrape_and_enrich,
)
from .fetch import create_http_fetcher, detect_platform, fetch_page_metadata, parse_page_metadata

__all__ = [
    "EnrichmentResult",
    "create_http_fetcher",
    "detect_platform",
    "enrich_candidates_with_metadata",
    "extract_urls_from_candidates",
    "extract_urls_from_text",
    "fetch_page_metadata",
    "inject_metadata_into_text",
    "parse_page_metadata",
    "scrape_and_enrich",
]
