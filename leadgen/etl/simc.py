"""Parsing of the TERYT registry exports (SIMC localities, TERC administrative units).

Both files are the semicolon separated CSV exports published by GUS with a
single header line. Only UTF-8 input is accepted; the official download is
often Windows-1250 and has to be converted first.
"""

import csv
import io
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Union

from leadgen.etl.slug import slugify

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class RegistryFormatError(ValueError):
    """Raised when a registry export cannot be read as expected."""


@dataclass(slots=True)
class SimcRow:
    woj: str
    pow: str
    gmi: str
    rodz_gmi: str
    rm: str
    mz: str
    nazwa: str
    sym: str
    sym_pod: str
    stan_na: str

    @property
    def is_canonical(self) -> bool:
        return self.sym == self.sym_pod


@dataclass(slots=True)
class TercRow:
    woj: str
    pow: str
    gmi: str
    rodz: str
    nazwa: str


@dataclass
class TercMaps:
    woj: Dict[str, str] = field(default_factory=dict)
    pow: Dict[str, str] = field(default_factory=dict)
    gmi: Dict[str, str] = field(default_factory=dict)


def read_utf8(path: PathLike) -> str:
    raw = Path(path).read_bytes()
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise RegistryFormatError(
            f"{path} is not UTF-8 (probably Windows-1250). "
            f"Convert it: iconv -f WINDOWS-1250 -t UTF-8 {path} > {path}.tmp && mv {path}.tmp {path}"
        ) from exc


def _rows(text: str) -> List[List[str]]:
    reader = csv.reader(io.StringIO(text.lstrip("\ufeff")), delimiter=";")
    rows = [row for row in reader if row]
    return rows[1:]


def parse_simc(text: str) -> List[SimcRow]:
    parsed: List[SimcRow] = []
    for idx, cols in enumerate(_rows(text)):
        if len(cols) < 10:
            logger.warning("SIMC line %d: expected 10 cols, got %d, skipping", idx + 2, len(cols))
            continue
        woj, pow_, gmi, rodz_gmi, rm, mz, nazwa, sym, sym_pod, stan_na = (col.strip() for col in cols[:10])
        parsed.append(
            SimcRow(
                woj=woj,
                pow=pow_,
                gmi=gmi,
                rodz_gmi=rodz_gmi,
                rm=rm,
                mz=mz,
                nazwa=nazwa,
                sym=sym,
                sym_pod=sym_pod,
                stan_na=stan_na,
            )
        )
    return parsed


def parse_terc(text: str) -> List[TercRow]:
    parsed: List[TercRow] = []
    for idx, cols in enumerate(_rows(text)):
        if len(cols) < 5:
            logger.warning("TERC line %d: expected >=5 cols, got %d, skipping", idx + 2, len(cols))
            continue
        parsed.append(
            TercRow(
                woj=cols[0].strip(),
                pow=cols[1].strip(),
                gmi=cols[2].strip(),
                rodz=cols[3].strip(),
                nazwa=cols[4].strip(),
            )
        )
    return parsed


def build_terc_maps(terc: Iterable[TercRow]) -> TercMaps:
    maps = TercMaps()
    for row in terc:
        if not row.pow and not row.gmi:
            maps.woj[row.woj] = row.nazwa
        elif not row.gmi:
            maps.pow[f"{row.woj}-{row.pow}"] = row.nazwa
        else:
            maps.gmi[f"{row.woj}-{row.pow}-{row.gmi}-{row.rodz}"] = row.nazwa
    return maps


def enrich_rows(
    rows: Iterable[SimcRow],
    maps: TercMaps,
    used_slugs: Optional[Set[str]] = None,
) -> List[Dict[str, Optional[str]]]:
    """Turn SIMC rows into locality insert rows with unit names and unique slugs.

    A name whose slug is already taken gets the registry code appended
    (``lipowo-0123456``); ``used_slugs`` is updated in place.
    """
    used = used_slugs if used_slugs is not None else set()
    enriched: List[Dict[str, Optional[str]]] = []
    for row in rows:
        woj_name = maps.woj.get(row.woj, "")
        if not woj_name:
            logger.warning("TERC miss: woj=%s for %s (sym=%s)", row.woj, row.nazwa, row.sym)

        slug = slugify(row.nazwa)
        if slug in used:
            slug = f"{slug}-{row.sym}"
        used.add(slug)

        enriched.append(
            {
                "name": row.nazwa,
                "slug": slug,
                "sym": row.sym,
                "sym_pod": row.sym_pod,
                "woj": row.woj,
                "woj_name": woj_name,
                "pow": row.pow,
                "pow_name": maps.pow.get(f"{row.woj}-{row.pow}", ""),
                "gmi": row.gmi,
                "gmi_name": maps.gmi.get(f"{row.woj}-{row.pow}-{row.gmi}-{row.rodz_gmi}", ""),
            }
        )
    return enriched
