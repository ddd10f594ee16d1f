from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

RawRecord = Dict[str, Any]

# Upstream hard cap on the size of one `range` window.
MAX_PAGE_SIZE = 150


@dataclass(frozen=True)
class Credential:
    """Bearer token plus its expiry on the monotonic clock of the lease that issued it."""

    token: str
    expires_at: float

    def is_valid(self, now: float) -> bool:
        return bool(self.token) and now < self.expires_at


@dataclass(frozen=True)
class SearchFilters:
    """Query filters forwarded to the listing endpoint. Empty values are not sent."""

    keywords: Optional[str] = "développeur"
    commune: Optional[str] = None
    departement: Optional[str] = None
    code_rome: Optional[str] = None
    type_contrat: Optional[str] = None
    nature: Optional[str] = None
    experience: Optional[str] = None
    temps_plein: Optional[bool] = None

    def as_params(self) -> Dict[str, str]:
        params: Dict[str, str] = {}
        pairs = (
            ("motsCles", self.keywords),
            ("commune", self.commune),
            ("departement", self.departement),
            ("codeROME", self.code_rome),
            ("typeContrat", self.type_contrat),
            ("nature", self.nature),
            ("experience", self.experience),
        )
        for key, value in pairs:
            if value is not None and str(value).strip():
                params[key] = str(value).strip()
        if self.temps_plein is not None:
            params["tempsPlein"] = "true" if self.temps_plein else "false"
        return params


@dataclass(frozen=True)
class FetchOptions:
    max_results: int
    page_size: int = MAX_PAGE_SIZE
    filters: SearchFilters = field(default_factory=SearchFilters)
    # Seconds the whole run may take; None means no limit.
    run_timeout_s: Optional[float] = None

    def __post_init__(self) -> None:
        if self.max_results < 0:
            raise ValueError(f"max_results must be >= 0, got {self.max_results}")
        if self.page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {self.page_size}")
        # Frozen: bypass __setattr__ to clamp to the upstream cap.
        object.__setattr__(self, "page_size", min(self.page_size, MAX_PAGE_SIZE))


@dataclass(frozen=True)
class NormalizedJob:
    """Canonical job record emitted by an ingestion run."""

    external_id: str
    title: str
    company: str
    description: str
    technologies: Tuple[str, ...]
    location: str
    region_id: Optional[int]
    salary_min_k_euros: Optional[int]
    salary_max_k_euros: Optional[int]
    source_url: Optional[str]
    posted_date: datetime
    is_remote: bool = False
    source: str = "france_travail"
    # The upstream has no reliable seniority signal.
    experience_level: None = None

    def as_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["technologies"] = list(self.technologies)
        data["posted_date"] = self.posted_date.isoformat()
        return data


@dataclass
class ConnectorRunStats:
    connector_name: str
    pages: int = 0
    raw_records: int = 0
    normalized_ok: int = 0
    rejected: Dict[str, int] = field(default_factory=dict)
    failed: int = 0
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    stop_reason: Optional[str] = None
    error_type: Optional[str] = None
    duration_s: float = 0.0

    @property
    def rejected_total(self) -> int:
        return sum(self.rejected.values())

    def record_rejection(self, reason: str) -> None:
        self.rejected[reason] = self.rejected.get(reason, 0) + 1
