"""CLI job that fills in coordinates for localities that have none yet."""

import argparse
import logging
import time
from typing import NamedTuple, Optional

from leadgen.core.config import ConfigError, Settings, get_settings
from leadgen.core.db import PostgresStore
from leadgen.geo.distance import haversine_km
from leadgen.models import GeocodeResult, Locality
from leadgen.vendors import nominatim

logger = logging.getLogger(__name__)


class GeocodeSummary(NamedTuple):
    processed: int
    failed: int
    remaining: int


def _full_query(locality: Locality) -> str:
    parts = [locality.name, locality.gmi_name, locality.pow_name, locality.woj_name, "Polska"]
    return ", ".join(part for part in parts if part)


def _fallback_query(locality: Locality) -> str:
    parts = [locality.name, locality.woj_name, "Polska"]
    return ", ".join(part for part in parts if part)


def _lookup(locality: Locality, settings: Settings) -> Optional[GeocodeResult]:
    coords = nominatim.search(_full_query(locality), settings.nominatim_url, settings.nominatim_user_agent)
    if coords is None:
        time.sleep(settings.geocode_sleep_seconds)
        coords = nominatim.search(_fallback_query(locality), settings.nominatim_url, settings.nominatim_user_agent)
    return coords


def geocode_localities(store, settings: Optional[Settings] = None, batch_size: Optional[int] = None) -> GeocodeSummary:
    """Geocode one batch of pending localities, one request at a time.

    Misses set ``geocode_failed`` so the locality is not retried; a rate limit
    or the wall-time budget ends the pass early and leaves the rest for the
    next run.
    """
    settings = settings or get_settings()
    limit = batch_size or settings.geocode_batch_size

    localities = store.list_localities_to_geocode(limit)
    if not localities:
        logger.info("geocoder: nothing to process")
        return GeocodeSummary(processed=0, failed=0, remaining=0)

    processed = 0
    failed = 0
    started = time.monotonic()

    for locality in localities:
        if time.monotonic() - started > settings.geocode_wall_time_seconds:
            logger.info("geocoder: wall-time limit reached after %d localities", processed)
            break

        try:
            coords = _lookup(locality, settings)
        except nominatim.NominatimRateLimited:
            logger.warning("geocoder: rate limited after %d localities, stopping", processed)
            break
        except (nominatim.NominatimError, ValueError, OSError) as exc:
            logger.warning("geocoder: error for %s (%s): %s", locality.name, locality.id, exc)
            time.sleep(settings.geocode_sleep_seconds)
            continue

        if coords is None:
            store.mark_geocode_failed(locality.id)
            failed += 1
        else:
            distance = haversine_km(settings.origin_lat, settings.origin_lng, coords.lat, coords.lng)
            store.set_locality_coordinates(locality.id, coords.lat, coords.lng, round(distance, 2))
            processed += 1

        time.sleep(settings.geocode_sleep_seconds)

    remaining = store.count_localities_to_geocode()
    logger.info("geocoder: processed=%d failed=%d remaining=%d", processed, failed, remaining)
    return GeocodeSummary(processed=processed, failed=failed, remaining=remaining)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Geocode localities without coordinates via Nominatim")
    parser.add_argument(
        "--batch-size",
        dest="batch_size",
        type=int,
        default=get_settings().geocode_batch_size,
        help="Maximum number of localities to geocode in this run",
    )
    return parser


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    args = build_parser().parse_args()

    try:
        geocode_localities(PostgresStore(), batch_size=args.batch_size)
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        raise SystemExit(2) from exc
    except Exception as exc:  # noqa: BLE001
        logger.error("Geocoding pass failed: %s", exc, exc_info=True)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
