"""Resolve scraped addresses and coordinates to canonical localities.

The store passed to every function only needs the locality lookups described
in :class:`leadgen.core.db.PostgresStore`:

* ``find_canonical_by_name(name)`` - case-insensitive exact name match
* ``find_canonical_in_box(lat, lng, delta)`` - canonical records with
  coordinates inside ``lat ± delta`` / ``lng ± delta``

Absence of a match is never an error; every matcher returns ``None`` and the
caller decides what to do next.
"""

import logging
from typing import Iterable, Optional, Tuple

from leadgen.etl.address import parse_city_from_address
from leadgen.geo.distance import haversine_km
from leadgen.models import Locality, LocalityMatch

logger = logging.getLogger(__name__)

NARROW_BOX_DEGREES = 0.15
WIDE_BOX_DEGREES = 0.5


def _nearest(candidates: Iterable[Locality], lat: float, lng: float) -> Optional[Tuple[Locality, float]]:
    best: Optional[Locality] = None
    best_distance = 0.0
    for candidate in candidates:
        if not candidate.has_coordinates:
            continue
        distance = haversine_km(lat, lng, candidate.lat, candidate.lng)
        if best is None or distance < best_distance:
            best = candidate
            best_distance = distance
    if best is None:
        return None
    return best, best_distance


def find_nearest_canonical(store, lat: float, lng: float) -> Optional[Tuple[Locality, float]]:
    """Nearest canonical locality within the narrow box, else the wide box.

    Returns the locality and its distance in km, or ``None`` when neither box
    contains a canonical record.
    """
    candidates = store.find_canonical_in_box(lat, lng, NARROW_BOX_DEGREES)
    if not candidates:
        logger.debug("No locality within %.2f deg of (%s, %s); widening", NARROW_BOX_DEGREES, lat, lng)
        candidates = store.find_canonical_in_box(lat, lng, WIDE_BOX_DEGREES)
    if not candidates:
        return None
    return _nearest(candidates, lat, lng)


def match_locality_by_name(
    store,
    name: str,
    lat: Optional[float] = None,
    lng: Optional[float] = None,
) -> Optional[LocalityMatch]:
    """Match a canonical locality by name, using coordinates only to break ties."""
    results = store.find_canonical_by_name(name)
    if not results:
        return None
    if len(results) == 1:
        return LocalityMatch.from_locality(results[0])

    if lat is not None and lng is not None:
        nearest = _nearest(results, lat, lng)
        if nearest is not None:
            locality, distance = nearest
            logger.debug("Ambiguous name %r resolved to %s (%.1f km)", name, locality.slug, distance)
            return LocalityMatch.from_locality(locality)

    logger.debug("Ambiguous name %r has %d canonical matches; leaving unresolved", name, len(results))
    return None


def match_locality_by_gps(store, lat: float, lng: float) -> Optional[LocalityMatch]:
    nearest = find_nearest_canonical(store, lat, lng)
    if nearest is None:
        return None
    return LocalityMatch.from_locality(nearest[0])


def resolve_locality(
    store,
    address: Optional[str],
    lat: Optional[float],
    lng: Optional[float],
) -> Optional[LocalityMatch]:
    """Best canonical locality for a scraped place.

    Registry names win over proximity: the parsed city is tried first, and GPS
    is only consulted on its own when the name gives nothing.
    """
    city = parse_city_from_address(address)
    if city:
        match = match_locality_by_name(store, city, lat, lng)
        if match:
            return match
    if lat is not None and lng is not None:
        return match_locality_by_gps(store, lat, lng)
    return None
