"""Location hint -> internal region id.

France Travail reports the workplace as ``lieuTravail`` with an optional
postal code and a free-text label such as ``"75 - Paris 8e Arrondissement"``.
The resolver derives a department code or a known city/region token from it,
maps that to a region code (``IDF``, ``ARA``, ...) and asks the region
repository for the id. Results, including misses, are memoized per key.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from typing import Any, Dict, Mapping, Optional, Protocol, Tuple

from jobmarket.job_connectors.logging_utils import get_logger, log_event

_DEPARTMENTS_BY_REGION: Dict[str, Tuple[str, ...]] = {
    "IDF": ("75", "77", "78", "91", "92", "93", "94", "95"),
    "ARA": ("01", "03", "07", "15", "26", "38", "42", "43", "63", "69", "73", "74"),
    "PAC": ("04", "05", "06", "13", "83", "84"),
    "OCC": ("09", "11", "12", "30", "31", "32", "34", "46", "48", "65", "66", "81", "82"),
    "NAQ": ("16", "17", "19", "23", "24", "33", "40", "47", "64", "79", "86", "87"),
    "HDF": ("02", "59", "60", "62", "80"),
    "GES": ("08", "10", "51", "52", "54", "55", "57", "67", "68", "88"),
    "BRE": ("22", "29", "35", "56"),
    "PDL": ("44", "49", "53", "72", "85"),
    "NOR": ("14", "27", "50", "61", "76"),
    "BFC": ("21", "25", "39", "58", "70", "71", "89", "90"),
    "CVL": ("18", "28", "36", "37", "41", "45"),
    "COR": ("20", "2a", "2b"),
    "GLP": ("971",),
    "MTQ": ("972",),
    "GUF": ("973",),
    "REU": ("974",),
    "MYT": ("976",),
}

REGION_CODE_BY_DEPARTMENT: Dict[str, str] = {
    dept: region for region, depts in _DEPARTMENTS_BY_REGION.items() for dept in depts
}

# Accent-free, lower-case tokens searched inside location labels. Order matters:
# the first token found in the label wins.
REGION_CODE_BY_TOKEN: Tuple[Tuple[str, str], ...] = (
    ("paris", "IDF"),
    ("ile-de-france", "IDF"),
    ("lyon", "ARA"),
    ("grenoble", "ARA"),
    ("auvergne-rhone-alpes", "ARA"),
    ("marseille", "PAC"),
    ("nice", "PAC"),
    ("provence-alpes-cote d'azur", "PAC"),
    ("toulouse", "OCC"),
    ("montpellier", "OCC"),
    ("occitanie", "OCC"),
    ("bordeaux", "NAQ"),
    ("nouvelle-aquitaine", "NAQ"),
    ("lille", "HDF"),
    ("hauts-de-france", "HDF"),
    ("strasbourg", "GES"),
    ("reims", "GES"),
    ("grand est", "GES"),
    ("rennes", "BRE"),
    ("brest", "BRE"),
    ("bretagne", "BRE"),
    ("nantes", "PDL"),
    ("pays de la loire", "PDL"),
    ("normandie", "NOR"),
    ("bourgogne-franche-comte", "BFC"),
    ("centre-val de loire", "CVL"),
    ("corse", "COR"),
)

# Region ids in the order the regions seed inserts them.
SEEDED_REGION_IDS: Dict[str, int] = {
    "IDF": 1,
    "ARA": 2,
    "NAQ": 3,
    "OCC": 4,
    "HDF": 5,
    "PAC": 6,
    "GES": 7,
    "PDL": 8,
    "BRE": 9,
    "NOR": 10,
    "BFC": 11,
    "CVL": 12,
    "COR": 13,
}

_LEADING_DEPT_RE = re.compile(r"^\s*(9[78]\d|2[ab]|\d{2})\b", re.IGNORECASE)


class RegionRepository(Protocol):
    def find_by_code(self, code: str) -> Optional[int]:
        ...


class StaticRegionRepository:
    """In-memory repository for runs without a database."""

    def __init__(self, ids_by_code: Optional[Mapping[str, int]] = None) -> None:
        self._ids = dict(SEEDED_REGION_IDS if ids_by_code is None else ids_by_code)

    def find_by_code(self, code: str) -> Optional[int]:
        return self._ids.get(code.upper())


def normalize_label(value: str) -> str:
    decomposed = unicodedata.normalize("NFD", value.lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).strip()


def department_from_postal_code(postal_code: Optional[str]) -> Optional[str]:
    code = re.sub(r"\s", "", postal_code or "").lower()
    if len(code) < 2:
        return None
    if code.startswith(("97", "98")):
        return code[:3] if len(code) >= 3 else None
    return code[:2]


class RegionResolver:
    def __init__(
        self,
        repository: Optional[RegionRepository] = None,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._repository = repository
        self._logger = get_logger(logger)
        self._cache: Dict[str, Optional[int]] = {}
        self.lookups = 0

    @property
    def cache(self) -> Dict[str, Optional[int]]:
        return self._cache

    def resolve(self, location: Any) -> Optional[int]:
        """Accepts the upstream ``lieuTravail`` object or a bare label."""
        if isinstance(location, Mapping):
            postal_code = location.get("codePostal")
            label = location.get("libelle")
        elif isinstance(location, str):
            postal_code, label = None, location
        else:
            return None

        match = self._match(
            postal_code if isinstance(postal_code, str) else None,
            label if isinstance(label, str) else None,
        )
        if match is None:
            return None
        key, region_code = match
        if key in self._cache:
            return self._cache[key]
        region_id, cacheable = self._lookup(region_code)
        if cacheable:
            self._cache[key] = region_id
        return region_id

    def _match(self, postal_code: Optional[str], label: Optional[str]) -> Optional[Tuple[str, str]]:
        dept = department_from_postal_code(postal_code)
        if dept and dept in REGION_CODE_BY_DEPARTMENT:
            return dept, REGION_CODE_BY_DEPARTMENT[dept]

        if not label:
            return None
        normalized = normalize_label(label)

        m = _LEADING_DEPT_RE.match(normalized)
        if m and m.group(1) in REGION_CODE_BY_DEPARTMENT:
            return m.group(1), REGION_CODE_BY_DEPARTMENT[m.group(1)]

        for token, region_code in REGION_CODE_BY_TOKEN:
            if token in normalized:
                return token, region_code
        return None

    def _lookup(self, region_code: str) -> Tuple[Optional[int], bool]:
        if self._repository is None:
            return None, True
        self.lookups += 1
        try:
            region_id = self._repository.find_by_code(region_code)
        except Exception as e:
            # An unknown region never fails a record.
            log_event(
                self._logger,
                logging.WARNING,
                "region_lookup_failed",
                region_code=region_code,
                error_type=type(e).__name__,
                error=str(e),
            )
            return None, False
        return (region_id if region_id else None), True
