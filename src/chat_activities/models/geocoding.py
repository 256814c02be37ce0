"""
Geocoding models.
"""

from typing import Optional

from pydantic import Field

from .activities import ClassifiedActivity
from .base import FrozenCamelModel


class GeocodeResult(FrozenCamelModel):
    """Coordinates returned by the external geocoder."""

    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)
    formatted_address: Optional[str] = None
    source: str = Field(default="geocoding", description="e.g. google_maps_url, geocoding, place_search")


class GeocodedActivity(ClassifiedActivity):
    """A classified activity with optional coordinates."""

    latitude: Optional[float] = None
    longitude: Optional[float] = None
    formatted_address: Optional[str] = None
    geocode_source: Optional[str] = None

    @property
    def is_geocoded(self) -> bool:
        return self.latitude is not None and self.longitude is not None
