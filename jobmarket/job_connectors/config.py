from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from jobmarket.job_connectors.models import MAX_PAGE_SIZE


@dataclass(frozen=True)
class ConnectorConfig:
    """Resilience and pagination knobs of an API connector. Durations in seconds."""

    max_retry_attempts: int = 3
    retry_delay_s: float = 1.0
    rate_limit_delay_s: float = 5.0
    max_delay_s: float = 60.0
    jitter_s: float = 0.0
    circuit_breaker_threshold: int = 5
    circuit_breaker_reset_s: float = 60.0
    enable_circuit_breaker: bool = True
    default_max_results: int = 150
    page_size: int = MAX_PAGE_SIZE
    request_delay_s: float = 0.15
    timeout_s: float = 15.0
    run_timeout_s: Optional[float] = None
