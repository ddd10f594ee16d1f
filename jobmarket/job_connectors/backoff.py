"""Retry classification and delay computation for upstream calls.

``classify`` is the single place that decides what a failure means. It only
knows the connector's own error types, never the HTTP client's, so the page
fetcher translates httpx failures first (see ``http.error_from_response``).
"""

from __future__ import annotations

import enum
import random
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Callable, Optional

from jobmarket.job_connectors.errors import (
    AuthError,
    NetworkError,
    RateLimitError,
    ServerError,
)


class Verdict(enum.Enum):
    RETRYABLE = "retryable"
    NOT_RETRYABLE = "not_retryable"
    REAUTHENTICATE = "reauthenticate"


def classify(error: BaseException) -> Verdict:
    if isinstance(error, NetworkError):
        return Verdict.RETRYABLE
    if isinstance(error, RateLimitError):
        return Verdict.RETRYABLE
    if isinstance(error, ServerError):
        return Verdict.RETRYABLE
    if isinstance(error, AuthError) and error.status_code == 401:
        return Verdict.REAUTHENTICATE
    return Verdict.NOT_RETRYABLE


def parse_retry_after_s(value: Optional[str], *, now: Optional[datetime] = None) -> Optional[float]:
    """Parse a Retry-After header given as delta-seconds or as an HTTP-date."""
    if not value:
        return None
    value = value.strip()
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        pass

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    delta = (when - (now or datetime.now(timezone.utc))).total_seconds()
    return delta if delta > 0 else None


class BackoffPolicy:
    def __init__(
        self,
        *,
        max_attempts: int = 3,
        base_delay_s: float = 1.0,
        rate_limit_base_delay_s: float = 5.0,
        max_delay_s: float = 60.0,
        jitter_s: float = 0.0,
        rng: Optional[random.Random] = None,
        utcnow: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.max_attempts = max(1, int(max_attempts))
        self._base_delay_s = max(0.0, float(base_delay_s))
        self._rate_limit_base_delay_s = max(0.0, float(rate_limit_base_delay_s))
        self._max_delay_s = max(0.0, float(max_delay_s))
        self._jitter_s = max(0.0, float(jitter_s))
        self._rng = rng or random.Random()
        self._utcnow = utcnow

    def classify(self, error: BaseException) -> Verdict:
        return classify(error)

    def should_retry(self, attempt: int, error: BaseException) -> bool:
        """``attempt`` is the number of attempts already made for this call (1-based)."""
        return classify(error) is Verdict.RETRYABLE and attempt < self.max_attempts

    def next_delay(self, attempt: int, error: BaseException) -> float:
        base = self._rate_limit_base_delay_s if isinstance(error, RateLimitError) else self._base_delay_s
        delay = min(self._max_delay_s, base * (2 ** max(0, attempt - 1)))
        if self._jitter_s > 0:
            delay += self._rng.random() * self._jitter_s

        if isinstance(error, RateLimitError):
            hint = parse_retry_after_s(error.retry_after, now=self._utcnow())
            if hint is not None:
                # The server's hint is a floor; never retry sooner than asked.
                delay = max(hint, delay)
        return delay
