"""URL slug helpers for localities and businesses."""

import re
from typing import Callable

_POLISH_MAP = str.maketrans(
    {
        "ą": "a", "ć": "c", "ę": "e", "ł": "l", "ń": "n",
        "ó": "o", "ś": "s", "ź": "z", "ż": "z",
        "Ą": "a", "Ć": "c", "Ę": "e", "Ł": "l", "Ń": "n",
        "Ó": "o", "Ś": "s", "Ź": "z", "Ż": "z",
    }
)
_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    """Fold Polish diacritics and collapse everything else into single dashes."""
    slug = text.translate(_POLISH_MAP).lower()
    slug = _NON_ALNUM.sub("-", slug)
    return slug.strip("-")


def collision_slug(slug: str, exists: Callable[[str], bool]) -> str:
    """Single-level collision rule used when relocating a business.

    Only ``-2`` is ever tried; a second collision is not chained to ``-3``.
    """
    if exists(slug):
        return f"{slug}-2"
    return slug
