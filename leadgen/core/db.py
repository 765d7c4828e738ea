"""Database helpers for the locality pipeline."""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Optional

from psycopg2 import errors, extras, pool

from leadgen.core.config import ConfigError, get_settings
from leadgen.models import Locality, SubLocalityBusiness

logger = logging.getLogger(__name__)

_connection_pool: Optional[pool.SimpleConnectionPool] = None


class SlugConflictError(RuntimeError):
    """Raised when a business update would duplicate a slug inside a locality."""


def init_pool(minconn: int = 1, maxconn: int = 5) -> pool.SimpleConnectionPool:
    """Initialise and return the shared connection pool."""
    global _connection_pool
    if _connection_pool is None:
        settings = get_settings()
        if not settings.database_url:
            raise ConfigError("DATABASE_URL is required for database connections")
        _connection_pool = pool.SimpleConnectionPool(
            minconn,
            maxconn,
            dsn=settings.database_url,
            connect_timeout=10,
        )
        logger.info("Database connection pool initialised")
    return _connection_pool


@contextmanager
def get_connection():
    """Context manager yielding a pooled connection."""
    pg_pool = init_pool()
    conn = pg_pool.getconn()
    try:
        yield conn
    finally:
        pg_pool.putconn(conn)


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS localities (
    id BIGSERIAL PRIMARY KEY,
    name TEXT NOT NULL,
    slug TEXT NOT NULL UNIQUE,
    sym TEXT NOT NULL UNIQUE,
    sym_pod TEXT,
    woj TEXT,
    woj_name TEXT,
    pow TEXT,
    pow_name TEXT,
    gmi TEXT,
    gmi_name TEXT,
    lat DOUBLE PRECISION,
    lng DOUBLE PRECISION,
    distance_km DOUBLE PRECISION,
    geocode_failed BOOLEAN NOT NULL DEFAULT FALSE,
    searched_at TIMESTAMPTZ,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS localities_name_lower_idx ON localities (lower(name));
CREATE INDEX IF NOT EXISTS localities_lat_lng_idx ON localities (lat, lng);
CREATE TABLE IF NOT EXISTS businesses (
    id BIGSERIAL PRIMARY KEY,
    locality_id BIGINT NOT NULL REFERENCES localities (id),
    place_id TEXT NOT NULL UNIQUE,
    title TEXT NOT NULL,
    slug TEXT NOT NULL,
    phone TEXT,
    address TEXT,
    website TEXT,
    category TEXT,
    rating DOUBLE PRECISION,
    gps_lat DOUBLE PRECISION,
    gps_lng DOUBLE PRECISION,
    site_generated BOOLEAN NOT NULL DEFAULT FALSE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE (locality_id, slug)
);
"""

_LOCALITY_COLUMNS = """
    id, name, slug, sym, sym_pod, woj, woj_name, pow, pow_name, gmi, gmi_name,
    lat, lng, distance_km, geocode_failed, searched_at
"""

_SELECT_CANONICAL_BY_NAME = f"""
SELECT {_LOCALITY_COLUMNS}
FROM localities
WHERE lower(name) = lower(%(name)s) AND sym = sym_pod
ORDER BY id;
"""

_SELECT_CANONICAL_IN_BOX = f"""
SELECT {_LOCALITY_COLUMNS}
FROM localities
WHERE sym = sym_pod
  AND lat IS NOT NULL AND lng IS NOT NULL
  AND lat BETWEEN %(lat_min)s AND %(lat_max)s
  AND lng BETWEEN %(lng_min)s AND %(lng_max)s
ORDER BY id;
"""

_SELECT_LOCALITY_BY_ID = f"""
SELECT {_LOCALITY_COLUMNS}
FROM localities
WHERE id = %(id)s;
"""

_SELECT_SUB_LOCALITY_BUSINESSES = """
SELECT b.id AS business_id, b.slug AS business_slug,
       b.gps_lat AS business_lat, b.gps_lng AS business_lng,
       b.site_generated,
       l.id AS locality_id, l.slug AS locality_slug,
       l.lat AS locality_lat, l.lng AS locality_lng
FROM businesses b
JOIN localities l ON b.locality_id = l.id
WHERE l.sym <> l.sym_pod
ORDER BY b.id;
"""

_SELECT_BUSINESS_SLUG_EXISTS = """
SELECT 1 FROM businesses WHERE locality_id = %(locality_id)s AND slug = %(slug)s LIMIT 1;
"""

_UPDATE_BUSINESS_LOCALITY = """
UPDATE businesses
SET locality_id = %(locality_id)s,
    slug = COALESCE(%(slug)s, slug)
WHERE id = %(business_id)s;
"""

_DELETE_EMPTY_SUB_LOCALITIES = """
DELETE FROM localities l
WHERE l.sym <> l.sym_pod
  AND NOT EXISTS (SELECT 1 FROM businesses b WHERE b.locality_id = l.id);
"""

_COUNT_SUB_LOCALITIES = "SELECT COUNT(*) AS cnt FROM localities WHERE sym <> sym_pod;"

_INSERT_LOCALITIES = """
INSERT INTO localities (
    name, slug, sym, sym_pod, woj, woj_name, pow, pow_name, gmi, gmi_name
) VALUES %s
ON CONFLICT DO NOTHING;
"""

_INSERT_LOCALITY_TEMPLATE = (
    "(%(name)s, %(slug)s, %(sym)s, %(sym_pod)s, %(woj)s, %(woj_name)s,"
    " %(pow)s, %(pow_name)s, %(gmi)s, %(gmi_name)s)"
)

_SELECT_LOCALITIES_TO_GEOCODE = f"""
SELECT {_LOCALITY_COLUMNS}
FROM localities
WHERE lat IS NULL AND geocode_failed = FALSE
ORDER BY id
LIMIT %(limit)s;
"""

_COUNT_LOCALITIES_TO_GEOCODE = """
SELECT COUNT(*) AS cnt FROM localities WHERE lat IS NULL AND geocode_failed = FALSE;
"""

_UPDATE_LOCALITY_COORDINATES = """
UPDATE localities
SET lat = %(lat)s, lng = %(lng)s, distance_km = %(distance_km)s
WHERE id = %(id)s;
"""

_MARK_GEOCODE_FAILED = "UPDATE localities SET geocode_failed = TRUE WHERE id = %(id)s;"


class PostgresStore:
    """Locality and business queries backed by the shared connection pool.

    Every write commits on its own; the pipeline never spans a transaction
    across more than one business or locality.
    """

    def _fetch_all(self, sql: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        with get_connection() as conn:
            with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
                cur.execute(sql, params or {})
                rows = cur.fetchall()
            conn.commit()
        return [dict(row) for row in rows]

    def _execute(self, sql: str, params: Optional[Dict[str, Any]] = None) -> int:
        with get_connection() as conn:
            try:
                with conn.cursor() as cur:
                    cur.execute(sql, params or {})
                    rowcount = cur.rowcount
                conn.commit()
            except Exception:
                conn.rollback()
                raise
        return rowcount

    def ensure_schema(self) -> None:
        self._execute(SCHEMA_SQL)
        logger.info("Schema ensured")

    # ---------- localities ----------

    def find_canonical_by_name(self, name: str) -> List[Locality]:
        rows = self._fetch_all(_SELECT_CANONICAL_BY_NAME, {"name": name})
        return [Locality(**row) for row in rows]

    def find_canonical_in_box(self, lat: float, lng: float, delta: float) -> List[Locality]:
        params = {
            "lat_min": lat - delta,
            "lat_max": lat + delta,
            "lng_min": lng - delta,
            "lng_max": lng + delta,
        }
        rows = self._fetch_all(_SELECT_CANONICAL_IN_BOX, params)
        return [Locality(**row) for row in rows]

    def get_locality(self, locality_id: int) -> Optional[Locality]:
        rows = self._fetch_all(_SELECT_LOCALITY_BY_ID, {"id": locality_id})
        return Locality(**rows[0]) if rows else None

    def count_sub_localities(self) -> int:
        rows = self._fetch_all(_COUNT_SUB_LOCALITIES)
        return int(rows[0]["cnt"]) if rows else 0

    def delete_empty_sub_localities(self) -> int:
        deleted = self._execute(_DELETE_EMPTY_SUB_LOCALITIES)
        logger.info("Deleted %d empty sub localities", deleted)
        return deleted

    def insert_localities(self, rows: Iterable[Dict[str, Any]], page_size: int = 100) -> int:
        """Insert seed rows, silently skipping slug/sym conflicts. Returns rows submitted."""
        batch = list(rows)
        if not batch:
            return 0
        with get_connection() as conn:
            with conn.cursor() as cur:
                extras.execute_values(
                    cur,
                    _INSERT_LOCALITIES,
                    batch,
                    template=_INSERT_LOCALITY_TEMPLATE,
                    page_size=page_size,
                )
            conn.commit()
        logger.debug("Inserted batch of %d localities", len(batch))
        return len(batch)

    def list_localities_to_geocode(self, limit: int) -> List[Locality]:
        rows = self._fetch_all(_SELECT_LOCALITIES_TO_GEOCODE, {"limit": limit})
        return [Locality(**row) for row in rows]

    def count_localities_to_geocode(self) -> int:
        rows = self._fetch_all(_COUNT_LOCALITIES_TO_GEOCODE)
        return int(rows[0]["cnt"]) if rows else 0

    def set_locality_coordinates(self, locality_id: int, lat: float, lng: float, distance_km: float) -> None:
        self._execute(
            _UPDATE_LOCALITY_COORDINATES,
            {"id": locality_id, "lat": lat, "lng": lng, "distance_km": distance_km},
        )

    def mark_geocode_failed(self, locality_id: int) -> None:
        self._execute(_MARK_GEOCODE_FAILED, {"id": locality_id})

    # ---------- businesses ----------

    def list_sub_locality_businesses(self) -> List[SubLocalityBusiness]:
        rows = self._fetch_all(_SELECT_SUB_LOCALITY_BUSINESSES)
        return [SubLocalityBusiness(**row) for row in rows]

    def business_slug_exists(self, locality_id: int, slug: str) -> bool:
        rows = self._fetch_all(_SELECT_BUSINESS_SLUG_EXISTS, {"locality_id": locality_id, "slug": slug})
        return bool(rows)

    def update_business_locality(self, business_id: int, locality_id: int, slug: Optional[str] = None) -> None:
        params = {"business_id": business_id, "locality_id": locality_id, "slug": slug}
        try:
            self._execute(_UPDATE_BUSINESS_LOCALITY, params)
        except errors.UniqueViolation as exc:
            raise SlugConflictError(
                f"slug {slug!r} already taken in locality {locality_id} (business {business_id})"
            ) from exc
        logger.debug("Moved business %s to locality %s", business_id, locality_id)
