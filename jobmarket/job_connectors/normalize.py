from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Optional, Union

from jobmarket.job_connectors.errors import ValidationRejection
from jobmarket.job_connectors.models import NormalizedJob, RawRecord
from jobmarket.job_connectors.regions import RegionResolver, normalize_label
from jobmarket.job_connectors.technologies import TechnologyDetector

FALLBACK_TITLE = "Poste non spécifié"
FALLBACK_COMPANY = "Non spécifié"
FALLBACK_DESCRIPTION = "Aucune description fournie"
FALLBACK_LOCATION = "France"
EXTERNAL_ID_PREFIX = "francetravail-"
DETAIL_URL_TEMPLATE = "https://candidat.francetravail.fr/offres/recherche/detail/{id}"

REMOTE_KEYWORDS = (
    "remote",
    "teletravail",
    "a distance",
    "full remote",
    "100% remote",
    "home office",
)

_AMOUNT = r"\d{1,3}(?:[ \u00a0\u202f]\d{3})+(?:[.,]\d+)?|\d+(?:[.,]\d+)?"
_CURRENCY = r"(?:euros?|€)"
_RANGE_RE = re.compile(
    rf"({_AMOUNT})\s*{_CURRENCY}?\s*(?:à|a|-|–|—)\s*({_AMOUNT})\s*{_CURRENCY}",
    re.IGNORECASE,
)
_SINGLE_RE = re.compile(rf"({_AMOUNT})\s*{_CURRENCY}", re.IGNORECASE)
_MONTHS_RE = re.compile(r"sur\s+(\d+(?:[.,]\d+)?)\s*mois", re.IGNORECASE)


def normalize_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", (text or "").strip())


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    value = value.strip()
    if not value:
        return None

    # RFC 822
    try:
        dt = parsedate_to_datetime(value)
        if dt is not None:
            if dt.tzinfo is None:
                return dt.replace(tzinfo=timezone.utc)
            return dt
    except (TypeError, ValueError):
        pass

    # ISO-ish
    iso = value.replace("Z", "+00:00")
    try:
        dt = datetime.fromisoformat(iso)
        if dt.tzinfo is None:
            return dt.replace(tzinfo=timezone.utc)
        return dt
    except ValueError:
        return None


@dataclass(frozen=True)
class SalaryRange:
    min_k_euros: Optional[int]
    max_k_euros: Optional[int]


NO_SALARY = SalaryRange(None, None)


def _to_decimal(amount: str) -> Optional[Decimal]:
    cleaned = re.sub(r"[\s\u00a0\u202f]", "", amount).replace(",", ".")
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        return None


def _to_k_euros(amount: Decimal) -> Optional[int]:
    k = (amount / Decimal(1000)).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return int(k) if k > 0 else None


def parse_salary(text: Optional[str]) -> SalaryRange:
    """Parse a France Travail ``salaire.libelle`` into annual thousands of euros.

    Examples::

        "40000 à 50000 Euros par an"                       -> (40, 50)
        "Mensuel de 2500.0 Euros à 3000.0 Euros sur 12 mois" -> (30, 36)
        "3000 € Mensuel sur 13 mois"                        -> (39, 39)

    Monthly amounts are annualised with the ``sur N mois`` multiplier, 12 by
    default. Hourly rates and anything unparsable yield no salary.
    """
    if not text or not isinstance(text, str):
        return NO_SALARY
    label = normalize_label(text)
    if "horaire" in label:
        return NO_SALARY

    m = _RANGE_RE.search(text)
    if m:
        low, high = _to_decimal(m.group(1)), _to_decimal(m.group(2))
    else:
        m = _SINGLE_RE.search(text)
        if not m:
            return NO_SALARY
        low = high = _to_decimal(m.group(1))
    if low is None or high is None or low <= 0 or high <= 0:
        return NO_SALARY

    if "mensuel" in label:
        months = Decimal(12)
        months_match = _MONTHS_RE.search(text)
        if months_match:
            parsed = _to_decimal(months_match.group(1))
            if parsed is not None and parsed > 0:
                months = parsed
        low, high = low * months, high * months

    low_k, high_k = _to_k_euros(low), _to_k_euros(high)
    if low_k is None or high_k is None:
        return NO_SALARY
    return SalaryRange(low_k, high_k)


def _text_or(value: Any, fallback: str) -> str:
    if isinstance(value, str):
        cleaned = normalize_whitespace(value)
        if cleaned:
            return cleaned
    return fallback


def _nested(raw: RawRecord, key: str) -> dict:
    value = raw.get(key)
    return value if isinstance(value, dict) else {}


def detect_remote(location: str, description: str) -> bool:
    blob = normalize_label(f"{location} {description}")
    return any(k in blob for k in REMOTE_KEYWORDS)


class FieldNormalizer:
    """Maps one raw France Travail offer onto a NormalizedJob.

    Only two things reject a record: a missing identifier and an empty
    technology set. Every other missing or malformed field falls back to a
    deterministic value.
    """

    def __init__(
        self,
        regions: Optional[RegionResolver] = None,
        *,
        detector: Optional[TechnologyDetector] = None,
        utcnow: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._regions = regions or RegionResolver()
        self._detector = detector or TechnologyDetector()
        self._utcnow = utcnow

    def normalize(self, raw: RawRecord) -> Union[NormalizedJob, ValidationRejection]:
        if not isinstance(raw, dict):
            return ValidationRejection(ValidationRejection.MISSING_ID)

        raw_id = raw.get("id")
        record_id = str(raw_id).strip() if isinstance(raw_id, (str, int)) and not isinstance(raw_id, bool) else ""
        if not record_id:
            return ValidationRejection(ValidationRejection.MISSING_ID)

        title = _text_or(raw.get("intitule"), FALLBACK_TITLE)
        description = _text_or(raw.get("description"), FALLBACK_DESCRIPTION)

        technologies = self._detector.detect(f"{title} {description}")
        if not technologies:
            return ValidationRejection(ValidationRejection.NO_TECHNOLOGIES, record_id)

        lieu = _nested(raw, "lieuTravail")
        location = _text_or(lieu.get("libelle"), FALLBACK_LOCATION)
        salary = parse_salary(_nested(raw, "salaire").get("libelle"))

        source_url = _nested(raw, "origineOffre").get("urlOrigine")
        if not isinstance(source_url, str) or not source_url.strip():
            source_url = DETAIL_URL_TEMPLATE.format(id=record_id)

        return NormalizedJob(
            external_id=f"{EXTERNAL_ID_PREFIX}{record_id}",
            title=title,
            company=_text_or(_nested(raw, "entreprise").get("nom"), FALLBACK_COMPANY),
            description=description,
            technologies=technologies,
            location=location,
            region_id=self._regions.resolve(lieu) if lieu else None,
            salary_min_k_euros=salary.min_k_euros,
            salary_max_k_euros=salary.max_k_euros,
            source_url=source_url.strip(),
            posted_date=self._posted_date(raw.get("dateCreation")),
            is_remote=detect_remote(location, description),
        )

    def _posted_date(self, value: Any) -> datetime:
        now = self._utcnow()
        posted = parse_datetime(value) if isinstance(value, str) else None
        if posted is None or posted > now:
            return now
        return posted
