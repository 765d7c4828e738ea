"""CLI job that folds businesses on sub localities into their nearest canonical locality."""

import argparse
import logging
import math
from typing import Optional, Tuple

from leadgen.core.artifacts import ArtifactError, FileArtifactStore
from leadgen.core.config import ConfigError, get_settings
from leadgen.core.db import PostgresStore, SlugConflictError
from leadgen.etl.slug import collision_slug
from leadgen.matching.locality_matcher import find_nearest_canonical
from leadgen.models import MigrationSummary, SubLocalityBusiness

logger = logging.getLogger(__name__)


def _coordinates(business: SubLocalityBusiness) -> Optional[Tuple[float, float]]:
    lat = business.business_lat if business.business_lat is not None else business.locality_lat
    lng = business.business_lng if business.business_lng is not None else business.locality_lng
    if lat is None or lng is None or math.isnan(lat) or math.isnan(lng):
        return None
    return lat, lng


def _target_slug(store, locality_id: int, slug: str) -> str:
    return collision_slug(slug, lambda candidate: store.business_slug_exists(locality_id, candidate))


def run_sub_locality_migration(store, artifacts=None) -> MigrationSummary:
    """Move every business off sub localities, then drop the emptied sub records.

    Businesses are handled one at a time; a business that cannot be placed is
    logged and counted as failed without stopping the run. Already migrated
    businesses no longer sit on a sub locality, so a second run is a no-op.
    """
    businesses = store.list_sub_locality_businesses()
    logger.info("Found %d businesses on sub localities", len(businesses))

    migrated = 0
    failed = 0

    for biz in businesses:
        coords = _coordinates(biz)
        if coords is None:
            logger.warning("SKIP business %s (%s): no GPS coordinates available", biz.business_id, biz.business_slug)
            failed += 1
            continue

        lat, lng = coords
        nearest = find_nearest_canonical(store, lat, lng)
        if nearest is None:
            logger.warning("SKIP business %s (%s): no canonical locality nearby", biz.business_id, biz.business_slug)
            failed += 1
            continue
        target, distance_km = nearest

        new_slug = _target_slug(store, target.id, biz.business_slug)
        if new_slug != biz.business_slug and store.business_slug_exists(target.id, new_slug):
            logger.warning(
                "SKIP business %s (%s): slug %r already taken in locality %s",
                biz.business_id,
                biz.business_slug,
                new_slug,
                target.id,
            )
            failed += 1
            continue

        if biz.site_generated and artifacts is not None:
            try:
                artifacts.move(biz.locality_slug, biz.business_slug, target.slug, new_slug)
            except ArtifactError as exc:
                logger.warning(
                    "Artifact move failed for %s/%s -> %s/%s: %s",
                    biz.locality_slug,
                    biz.business_slug,
                    target.slug,
                    new_slug,
                    exc,
                )

        try:
            store.update_business_locality(
                biz.business_id,
                target.id,
                new_slug if new_slug != biz.business_slug else None,
            )
        except SlugConflictError as exc:
            logger.warning("SKIP business %s (%s): %s", biz.business_id, biz.business_slug, exc)
            failed += 1
            continue

        logger.info(
            "%s %s: %s -> %s (%.1f km)",
            biz.business_id,
            biz.business_slug,
            biz.locality_slug,
            target.slug,
            distance_km,
        )
        migrated += 1

    logger.info("Migrated: %d, Failed: %d", migrated, failed)

    store.delete_empty_sub_localities()
    remaining = store.count_sub_localities()
    logger.info("Sub localities remaining: %d", remaining)

    return MigrationSummary(migrated=migrated, failed=failed, remaining=remaining)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Migrate businesses from sub localities to canonical localities")
    parser.add_argument(
        "--artifacts-dir",
        dest="artifacts_dir",
        default=get_settings().artifacts_dir,
        help="Root directory of generated site artifacts",
    )
    parser.add_argument(
        "--no-artifacts",
        dest="no_artifacts",
        action="store_true",
        help="Only update the database; leave site artifacts where they are",
    )
    return parser


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    args = build_parser().parse_args()

    artifacts = None if args.no_artifacts else FileArtifactStore(args.artifacts_dir)
    try:
        summary = run_sub_locality_migration(PostgresStore(), artifacts)
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        raise SystemExit(2) from exc
    except Exception as exc:  # noqa: BLE001
        logger.error("Sub locality migration failed: %s", exc, exc_info=True)
        raise SystemExit(1) from exc

    logger.info(
        "Done. migrated=%d failed=%d remaining=%d",
        summary.migrated,
        summary.failed,
        summary.remaining,
    )


if __name__ == "__main__":
    main()
