"""Client utilities for the OpenStreetMap Nominatim search API."""

import logging
import math
from typing import Any, Dict, List, Optional

import requests

from leadgen.models import GeocodeResult

logger = logging.getLogger(__name__)
_SESSION = requests.Session()


class NominatimError(RuntimeError):
    """Raised when Nominatim returns a non-successful response."""


class NominatimRateLimited(NominatimError):
    """Raised on HTTP 429; callers should stop the current pass."""


def _to_result(item: Dict[str, Any]) -> Optional[GeocodeResult]:
    try:
        lat = float(item["lat"])
        lng = float(item["lon"])
    except (KeyError, TypeError, ValueError):
        logger.debug("Nominatim hit without usable coordinates: %s", item)
        return None
    if math.isnan(lat) or math.isnan(lng):
        return None
    return GeocodeResult(
        lat=lat,
        lng=lng,
        place_id=item.get("place_id"),
        osm_type=item.get("osm_type"),
        osm_id=item.get("osm_id"),
        display_name=item.get("display_name"),
    )


def search(query: str, url: str, user_agent: str) -> Optional[GeocodeResult]:
    """Return the first hit for a free-text query, or ``None`` when nothing matched."""
    params = {"q": query, "format": "json", "limit": "1"}
    response = _SESSION.get(url, params=params, headers={"User-Agent": user_agent}, timeout=10)
    if response.status_code == 429:
        raise NominatimRateLimited("Nominatim rate limit reached")
    if response.status_code >= 400:
        logger.error("search failed: status=%s query=%s", response.status_code, query)
        raise NominatimError(f"HTTP_{response.status_code}")

    payload: List[Dict[str, Any]] = response.json() or []
    if not payload:
        return None
    return _to_result(payload[0])
