"""
Geocoding step over classified activities.

The geocoder itself is an external collaborator: `geocode(query, region)`
returning Ok(GeocodeResult) or Err(ApiError). Responses go through the
request cache; a failed lookup leaves the activity without coordinates.
"""

from typing import Callable, Dict, List, Optional, Sequence

import structlog

from ..cache.backends import ResponseCache
from ..cache.keys import geocode_cache_key
from ..cache.request_cache import cached_call
from ..models.activities import ClassifiedActivity
from ..models.geocoding import GeocodedActivity, GeocodeResult
from ..models.results import Ok, Result


logger = structlog.get_logger(__name__)

Geocoder = Callable[[str, Optional[str]], Result]


def geocode_query(activity: ClassifiedActivity) -> Optional[str]:
    """Query string for an activity, or None when it cannot be mapped."""
    if not activity.is_mappable:
        return None
    return activity.format_location()


def geocode_activities(
    activities: Sequence[ClassifiedActivity],
    geocode: Geocoder,
    cache: Optional[ResponseCache] = None,
    region: Optional[str] = None,
    ttl_seconds: Optional[int] = None,
    observer=None,
) -> List[GeocodedActivity]:
    """
    Attach coordinates to every mappable activity.

    Args:
        activities: Classified activities, in output order
        geocode: External geocoder
        cache: Request-level cache (successful lookups only)
        region: Region bias (2-letter country code)
        ttl_seconds: Cache TTL for lookups
        observer: Optional PipelineObserver (cache_checked)

    Returns:
        One GeocodedActivity per input, same order
    """
    on_check = observer.cache_checked if observer is not None else None
    geocoded = []

    for activity in activities:
        data = activity.model_dump()
        query = geocode_query(activity)
        if query:
            result = cached_call(
                cache,
                geocode_cache_key(query, region),
                lambda: _jsonable(geocode(query, region)),
                ttl_seconds=ttl_seconds,
                on_check=on_check,
            )
            if result.ok:
                location = GeocodeResult.model_validate(result.value)
                data.update(
                    latitude=location.latitude,
                    longitude=location.longitude,
                    formatted_address=location.formatted_address,
                    geocode_source=location.source,
                )
            else:
                logger.debug("geocode_failed", query=query, error=str(result.error))
        geocoded.append(GeocodedActivity.model_validate(data))

    return geocoded


def _jsonable(result: Result) -> Result:
    if result.ok and isinstance(result.value, GeocodeResult):
        return Ok(result.value.model_dump(mode="json"))
    return result


def calculate_geocode_stats(activities: Sequence[GeocodedActivity]) -> Dict[str, int]:
    """
    Summary counts for the geocode_stats stage.

    Examples:
        >>> calculate_geocode_stats(geocoded)
        {'activitiesProcessed': 3, 'activitiesGeocoded': 2, 'failed': 1, 'geocoding': 2}
    """
    stats: Dict[str, int] = {
        "activitiesProcessed": len(activities),
        "activitiesGeocoded": 0,
        "failed": 0,
    }
    for activity in activities:
        if activity.is_geocoded:
            stats["activitiesGeocoded"] += 1
            source = activity.geocode_source or "unknown"
            stats[source] = stats.get(source, 0) + 1
        else:
            stats["failed"] += 1
    return stats
