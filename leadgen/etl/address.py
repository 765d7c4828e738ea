"""Heuristics for pulling a locality name out of a scraped postal address."""

import logging
import re
from typing import Optional

logger = logging.getLogger(__name__)

_SKIP_PARTS = {
    "polska",
    "poland",
    "pl",
    "dolnośląskie",
    "kujawsko-pomorskie",
    "lubelskie",
    "lubuskie",
    "łódzkie",
    "małopolskie",
    "mazowieckie",
    "opolskie",
    "podkarpackie",
    "podlaskie",
    "pomorskie",
    "śląskie",
    "świętokrzyskie",
    "warmińsko-mazurskie",
    "wielkopolskie",
    "zachodniopomorskie",
}

_STREET_PREFIXES = {"ul.", "ul", "al.", "al", "os.", "os", "pl.", "pl"}

_BARE_POSTAL_CODE = re.compile(r"^[0-9]{2}-[0-9]{3}$")
_POSTAL_CODE_WITH_CITY = re.compile(r"^[0-9]{2}-[0-9]{3}\s+(.+)$")
_DIGIT = re.compile(r"[0-9]")


def parse_city_from_address(address: Optional[str]) -> Optional[str]:
    """Return the most likely city name in ``address`` or ``None``.

    Segments are scanned right to left because scraped addresses put the
    locality before the province and country, e.g.
    ``"Parkowa 5, 62-085 Skoki, Poland"`` yields ``"Skoki"``.
    """
    if not address:
        return None

    parts = [part.strip() for part in address.split(",")]
    parts = [part for part in parts if part]

    for part in reversed(parts):
        lower = part.lower()
        if lower in _SKIP_PARTS:
            continue
        if _BARE_POSTAL_CODE.match(part):
            continue

        postal_match = _POSTAL_CODE_WITH_CITY.match(part)
        if postal_match:
            return postal_match.group(1).strip()

        first_word = lower.split()[0]
        if first_word in _STREET_PREFIXES:
            continue
        if _DIGIT.search(part):
            continue

        return part

    logger.debug("No city candidate in address %r", address)
    return None
