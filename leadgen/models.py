"""Core data models shared by the locality pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(slots=True)
class Locality:
    """A place from the national registry.

    Records where ``sym == sym_pod`` are canonical; every other record is a
    legacy sub record waiting to be folded into its canonical neighbour.
    """

    id: int
    name: str
    slug: str
    sym: str
    sym_pod: Optional[str] = None
    woj: Optional[str] = None
    woj_name: Optional[str] = None
    pow: Optional[str] = None
    pow_name: Optional[str] = None
    gmi: Optional[str] = None
    gmi_name: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    distance_km: Optional[float] = None
    geocode_failed: bool = False
    searched_at: Optional[datetime] = None

    @property
    def is_canonical(self) -> bool:
        return self.sym == self.sym_pod

    @property
    def is_sub(self) -> bool:
        return self.sym_pod is not None and self.sym != self.sym_pod

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lng is not None


@dataclass(slots=True)
class Business:
    """A scraped business attached to a locality."""

    id: int
    locality_id: int
    place_id: str
    title: str
    slug: str
    phone: Optional[str] = None
    address: Optional[str] = None
    website: Optional[str] = None
    category: Optional[str] = None
    rating: Optional[float] = None
    gps_lat: Optional[float] = None
    gps_lng: Optional[float] = None
    site_generated: bool = False


@dataclass(slots=True)
class SubLocalityBusiness:
    """A business joined with the sub locality it currently belongs to."""

    business_id: int
    business_slug: str
    business_lat: Optional[float]
    business_lng: Optional[float]
    site_generated: bool
    locality_id: int
    locality_slug: str
    locality_lat: Optional[float]
    locality_lng: Optional[float]


@dataclass(frozen=True, slots=True)
class LocalityMatch:
    id: int
    name: str
    slug: str

    @classmethod
    def from_locality(cls, locality: Locality) -> "LocalityMatch":
        return cls(id=locality.id, name=locality.name, slug=locality.slug)


@dataclass(frozen=True, slots=True)
class MigrationSummary:
    migrated: int
    failed: int
    remaining: int


@dataclass(frozen=True, slots=True)
class GeocodeResult:
    """First hit of a Nominatim search."""

    lat: float
    lng: float
    place_id: Optional[int] = None
    osm_type: Optional[str] = None
    osm_id: Optional[int] = None
    display_name: Optional[str] = None
