from __future__ import annotations

import enum
import logging
import time
from typing import Callable, Optional

from jobmarket.job_connectors.errors import CircuitOpenError
from jobmarket.job_connectors.logging_utils import get_logger, log_event


class BreakerState(enum.Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """Consecutive-failure breaker guarding calls to one upstream.

    ``CLOSED`` lets every call through. ``threshold`` consecutive failures open
    it; while ``OPEN`` calls are rejected with ``CircuitOpenError`` until
    ``reset_timeout_s`` has elapsed, after which a single trial call is allowed
    (``HALF_OPEN``). The trial's outcome closes or re-opens the breaker.
    """

    def __init__(
        self,
        *,
        threshold: int = 5,
        reset_timeout_s: float = 60.0,
        enabled: bool = True,
        now: Callable[[], float] = time.monotonic,
        logger: Optional[logging.Logger] = None,
        name: str = "upstream",
    ) -> None:
        self._threshold = max(1, int(threshold))
        self._reset_timeout_s = max(0.0, float(reset_timeout_s))
        self.enabled = bool(enabled)
        self._now = now
        self._logger = get_logger(logger)
        self._name = name

        self._state = BreakerState.CLOSED
        self._opened_at: Optional[float] = None
        self._trial_in_flight = False
        self.consecutive_failures = 0

    @property
    def state(self) -> BreakerState:
        if self._state is BreakerState.OPEN and self._reset_elapsed():
            self._state = BreakerState.HALF_OPEN
            self._trial_in_flight = False
            log_event(self._logger, logging.INFO, "circuit_half_open", breaker=self._name)
        return self._state

    @property
    def opened_at(self) -> Optional[float]:
        return self._opened_at

    def _reset_elapsed(self) -> bool:
        return self._opened_at is not None and self._now() - self._opened_at >= self._reset_timeout_s

    def _retry_in_s(self) -> float:
        if self._opened_at is None:
            return 0.0
        return max(0.0, self._opened_at + self._reset_timeout_s - self._now())

    def is_open(self) -> bool:
        """True while calls would be rejected; does not admit a trial call."""
        return self.enabled and self.state is BreakerState.OPEN

    def before_call(self) -> None:
        if not self.enabled:
            return
        state = self.state
        if state is BreakerState.OPEN:
            raise CircuitOpenError(self._retry_in_s())
        if state is BreakerState.HALF_OPEN:
            if self._trial_in_flight:
                raise CircuitOpenError(0.0)
            self._trial_in_flight = True

    def abandon_call(self) -> None:
        """Forget an admitted call that ended without an outcome (e.g. cancelled)."""
        self._trial_in_flight = False

    def record_success(self) -> None:
        if not self.enabled:
            return
        if self._state is not BreakerState.CLOSED:
            log_event(self._logger, logging.INFO, "circuit_closed", breaker=self._name)
        self._state = BreakerState.CLOSED
        self._opened_at = None
        self._trial_in_flight = False
        self.consecutive_failures = 0

    def record_failure(self) -> None:
        if not self.enabled:
            return
        self.consecutive_failures += 1
        if self._state is BreakerState.HALF_OPEN or self.consecutive_failures >= self._threshold:
            self._open()

    def _open(self) -> None:
        self._state = BreakerState.OPEN
        self._opened_at = self._now()
        self._trial_in_flight = False
        log_event(
            self._logger,
            logging.ERROR,
            "circuit_opened",
            breaker=self._name,
            consecutive_failures=self.consecutive_failures,
            reset_timeout_s=self._reset_timeout_s,
        )
