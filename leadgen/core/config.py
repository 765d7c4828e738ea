"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


class ConfigError(RuntimeError):
    """Raised when mandatory configuration is missing."""


@dataclass(frozen=True)
class Settings:
    database_url: str
    artifacts_dir: str = "data/sites"
    nominatim_url: str = "https://nominatim.openstreetmap.org/search"
    nominatim_user_agent: str = "LeadGen/1.0 (kontakt@wizytowka.link)"
    geocode_batch_size: int = 800
    geocode_sleep_seconds: float = 1.1
    geocode_wall_time_seconds: float = 25 * 60
    origin_lat: float = 52.3547
    origin_lng: float = 21.0822
    seed_batch_size: int = 100


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    database_url = os.getenv("DATABASE_URL", "")
    artifacts_dir = os.getenv("ARTIFACTS_DIR", "data/sites")
    nominatim_url = os.getenv("NOMINATIM_URL", "https://nominatim.openstreetmap.org/search")
    nominatim_user_agent = os.getenv("NOMINATIM_USER_AGENT", "LeadGen/1.0 (kontakt@wizytowka.link)")
    geocode_batch_size = int(os.getenv("GEOCODE_BATCH_SIZE", "800"))
    geocode_sleep_seconds = float(os.getenv("GEOCODE_SLEEP_SECONDS", "1.1"))
    geocode_wall_time_seconds = float(os.getenv("GEOCODE_WALL_TIME_SECONDS", "1500"))
    origin_lat = float(os.getenv("ORIGIN_LAT", "52.3547"))
    origin_lng = float(os.getenv("ORIGIN_LNG", "21.0822"))
    seed_batch_size = int(os.getenv("SEED_BATCH_SIZE", "100"))

    if not database_url:
        logger.warning("DATABASE_URL is not set; database operations will fail.")
    if "@" not in nominatim_user_agent and "http" not in nominatim_user_agent:
        logger.warning("NOMINATIM_USER_AGENT has no contact address; Nominatim may block requests.")

    return Settings(
        database_url=database_url,
        artifacts_dir=artifacts_dir,
        nominatim_url=nominatim_url,
        nominatim_user_agent=nominatim_user_agent,
        geocode_batch_size=geocode_batch_size,
        geocode_sleep_seconds=geocode_sleep_seconds,
        geocode_wall_time_seconds=geocode_wall_time_seconds,
        origin_lat=origin_lat,
        origin_lng=origin_lng,
        seed_batch_size=seed_batch_size,
    )
