"""CLI job importing the national locality registry into the database."""

import argparse
import logging
from typing import Optional

from leadgen.core.config import ConfigError, get_settings
from leadgen.core.db import PostgresStore
from leadgen.etl.simc import (
    PathLike,
    build_terc_maps,
    enrich_rows,
    parse_simc,
    parse_terc,
    read_utf8,
)

logger = logging.getLogger(__name__)


def seed_localities(
    store,
    simc_path: PathLike,
    terc_path: PathLike,
    *,
    include_sub: bool = False,
    batch_size: Optional[int] = None,
) -> int:
    """Load SIMC/TERC exports and insert localities in sequential batches.

    Only canonical rows are imported unless ``include_sub`` is set. Returns the
    number of rows submitted; rows clashing on slug or code are skipped by the
    store.
    """
    batch_size = batch_size or get_settings().seed_batch_size
    if batch_size <= 0:
        raise ValueError("batch_size must be positive")

    simc = parse_simc(read_utf8(simc_path))
    terc = parse_terc(read_utf8(terc_path))
    logger.info("Parsed %d SIMC rows and %d TERC rows", len(simc), len(terc))

    maps = build_terc_maps(terc)
    logger.info("TERC lookup maps: woj=%d pow=%d gmi=%d", len(maps.woj), len(maps.pow), len(maps.gmi))

    rows = simc if include_sub else [row for row in simc if row.is_canonical]
    if not include_sub:
        logger.info("%d canonical rows (filtered %d sub rows)", len(rows), len(simc) - len(rows))

    used_slugs: set = set()
    localities = enrich_rows(rows, maps, used_slugs)
    if len(localities) != len(used_slugs):
        logger.warning("Slug count mismatch: %d localities, %d slugs", len(localities), len(used_slugs))

    inserted = 0
    total_batches = (len(localities) + batch_size - 1) // batch_size
    for start in range(0, len(localities), batch_size):
        batch = localities[start : start + batch_size]
        inserted += store.insert_localities(batch, page_size=batch_size)
        logger.info("batch %d/%d", start // batch_size + 1, total_batches)

    logger.info("Seed finished: %d localities submitted", inserted)
    return inserted


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Seed localities from TERYT SIMC/TERC exports")
    parser.add_argument("--simc", dest="simc_path", default="data/simc.csv", help="Path to SIMC CSV export")
    parser.add_argument("--terc", dest="terc_path", default="data/terc.csv", help="Path to TERC CSV export")
    parser.add_argument(
        "--include-sub",
        dest="include_sub",
        action="store_true",
        help="Also import sub localities (sym != sym_pod)",
    )
    parser.add_argument(
        "--batch-size",
        dest="batch_size",
        type=int,
        default=get_settings().seed_batch_size,
        help="Rows per INSERT batch",
    )
    return parser


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    args = build_parser().parse_args()

    store = PostgresStore()
    try:
        store.ensure_schema()
        seed_localities(
            store,
            args.simc_path,
            args.terc_path,
            include_sub=args.include_sub,
            batch_size=args.batch_size,
        )
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        raise SystemExit(2) from exc
    except Exception as exc:  # noqa: BLE001
        logger.error("Seed failed: %s", exc, exc_info=True)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
