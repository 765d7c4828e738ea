import sys
from pathlib import Path
from typing import Dict, List, Optional

import pytest

# Ensure the `leadgen` package is importable when running pytest from the repository root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from leadgen.core.db import SlugConflictError  # noqa: E402
from leadgen.models import Business, Locality, SubLocalityBusiness  # noqa: E402


class InMemoryStore:
    """Dict-backed stand-in for PostgresStore with the same query semantics."""

    def __init__(self, enforce_unique_slugs: bool = False):
        self.localities: Dict[int, Locality] = {}
        self.businesses: Dict[int, Business] = {}
        self.enforce_unique_slugs = enforce_unique_slugs
        self.box_queries: List[float] = []
        self.inserted_batches: List[List[dict]] = []
        self._next_locality_id = 1

    # ---------- fixtures helpers ----------

    def add_locality(
        self,
        id: int,
        name: str,
        lat: Optional[float] = None,
        lng: Optional[float] = None,
        sym: Optional[str] = None,
        sym_pod: Optional[str] = None,
        slug: Optional[str] = None,
        **extra,
    ) -> Locality:
        sym = sym or f"{id:07d}"
        locality = Locality(
            id=id,
            name=name,
            slug=slug or f"{name.lower()}-{id}",
            sym=sym,
            sym_pod=sym_pod or sym,
            lat=lat,
            lng=lng,
            **extra,
        )
        self.localities[id] = locality
        self._next_locality_id = max(self._next_locality_id, id + 1)
        return locality

    def add_business(
        self,
        id: int,
        locality_id: int,
        slug: str,
        gps_lat: Optional[float] = None,
        gps_lng: Optional[float] = None,
        site_generated: bool = False,
    ) -> Business:
        business = Business(
            id=id,
            locality_id=locality_id,
            place_id=f"place-{id}",
            title=slug.replace("-", " ").title(),
            slug=slug,
            gps_lat=gps_lat,
            gps_lng=gps_lng,
            site_generated=site_generated,
        )
        self.businesses[id] = business
        return business

    def _sorted_localities(self) -> List[Locality]:
        return [self.localities[key] for key in sorted(self.localities)]

    # ---------- store interface ----------

    def find_canonical_by_name(self, name: str) -> List[Locality]:
        return [loc for loc in self._sorted_localities() if loc.is_canonical and loc.name.lower() == name.lower()]

    def find_canonical_in_box(self, lat: float, lng: float, delta: float) -> List[Locality]:
        self.box_queries.append(delta)
        return [
            loc
            for loc in self._sorted_localities()
            if loc.is_canonical
            and loc.has_coordinates
            and lat - delta <= loc.lat <= lat + delta
            and lng - delta <= loc.lng <= lng + delta
        ]

    def get_locality(self, locality_id: int) -> Optional[Locality]:
        return self.localities.get(locality_id)

    def list_sub_locality_businesses(self) -> List[SubLocalityBusiness]:
        rows = []
        for key in sorted(self.businesses):
            biz = self.businesses[key]
            loc = self.localities[biz.locality_id]
            if not loc.is_sub:
                continue
            rows.append(
                SubLocalityBusiness(
                    business_id=biz.id,
                    business_slug=biz.slug,
                    business_lat=biz.gps_lat,
                    business_lng=biz.gps_lng,
                    site_generated=biz.site_generated,
                    locality_id=loc.id,
                    locality_slug=loc.slug,
                    locality_lat=loc.lat,
                    locality_lng=loc.lng,
                )
            )
        return rows

    def business_slug_exists(self, locality_id: int, slug: str) -> bool:
        return any(b.locality_id == locality_id and b.slug == slug for b in self.businesses.values())

    def update_business_locality(self, business_id: int, locality_id: int, slug: Optional[str] = None) -> None:
        business = self.businesses[business_id]
        new_slug = slug or business.slug
        if self.enforce_unique_slugs and any(
            b.id != business_id and b.locality_id == locality_id and b.slug == new_slug
            for b in self.businesses.values()
        ):
            raise SlugConflictError(f"slug {new_slug!r} already taken in locality {locality_id}")
        business.locality_id = locality_id
        business.slug = new_slug

    def delete_empty_sub_localities(self) -> int:
        used = {b.locality_id for b in self.businesses.values()}
        doomed = [loc.id for loc in self.localities.values() if loc.is_sub and loc.id not in used]
        for locality_id in doomed:
            del self.localities[locality_id]
        return len(doomed)

    def count_sub_localities(self) -> int:
        return sum(1 for loc in self.localities.values() if loc.is_sub)

    def insert_localities(self, rows, page_size: int = 100) -> int:
        batch = list(rows)
        self.inserted_batches.append(batch)
        slugs = {loc.slug for loc in self.localities.values()}
        syms = {loc.sym for loc in self.localities.values()}
        for row in batch:
            if row["slug"] in slugs or row["sym"] in syms:
                continue
            locality_id = self._next_locality_id
            self._next_locality_id += 1
            self.localities[locality_id] = Locality(id=locality_id, **row)
            slugs.add(row["slug"])
            syms.add(row["sym"])
        return len(batch)

    def list_localities_to_geocode(self, limit: int) -> List[Locality]:
        pending = [loc for loc in self._sorted_localities() if loc.lat is None and not loc.geocode_failed]
        return pending[:limit]

    def count_localities_to_geocode(self) -> int:
        return len(self.list_localities_to_geocode(len(self.localities)))

    def set_locality_coordinates(self, locality_id: int, lat: float, lng: float, distance_km: float) -> None:
        locality = self.localities[locality_id]
        locality.lat = lat
        locality.lng = lng
        locality.distance_km = distance_km

    def mark_geocode_failed(self, locality_id: int) -> None:
        self.localities[locality_id].geocode_failed = True


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def strict_store():
    return InMemoryStore(enforce_unique_slugs=True)
