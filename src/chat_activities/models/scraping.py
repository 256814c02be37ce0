"""
Scraped URL metadata.
"""

from typing import List, Optional

from pydantic import Field

from .base import FrozenCamelModel


class ScrapedMetadata(FrozenCamelModel):
    """Page metadata fetched for a URL shared in chat."""

    url: str
    platform: str = Field(default="website", description="Source platform, e.g. youtube, airbnb")
    title: Optional[str] = None
    description: Optional[str] = None
    creator: Optional[str] = None
    categories: Optional[List[str]] = None
