from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional, Tuple

from jobmarket.job_connectors.errors import CircuitOpenError, DeadlineExceededError, JobConnectorError
from jobmarket.job_connectors.http import PageFetcher
from jobmarket.job_connectors.logging_utils import get_logger, log_event
from jobmarket.job_connectors.models import FetchOptions, RawRecord

StopReason = str  # "max_results" | "exhausted" | "error" | "circuit_open" | "deadline"


@dataclass
class PaginationResult:
    records: List[RawRecord] = field(default_factory=list)
    pages: int = 0
    stop_reason: StopReason = "max_results"
    error: Optional[BaseException] = None


def iter_ranges(max_results: int, page_size: int) -> Iterator[Tuple[int, int]]:
    """Inclusive ``(start, end)`` offset windows covering ``[0, max_results)``."""
    start = 0
    while start < max_results:
        end = min(start + page_size, max_results) - 1
        yield start, end
        start = end + 1


class Paginator:
    """Drives the page fetcher sequentially until ``max_results`` or an empty page."""

    def __init__(
        self,
        fetcher: PageFetcher,
        *,
        now: Callable[[], float] = time.monotonic,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._fetcher = fetcher
        self._now = now
        self._logger = get_logger(logger)

    def fetch_all(self, options: FetchOptions, *, deadline: Optional[float] = None) -> PaginationResult:
        result = PaginationResult()
        params = options.filters.as_params()

        for start, end in iter_ranges(options.max_results, options.page_size):
            range_value = f"{start}-{end}"
            if deadline is not None and self._now() >= deadline:
                self._stop_on_deadline(result, range_value, None)
                return result

            try:
                page = self._fetcher.fetch_page(range_value, params, deadline=deadline)
            except CircuitOpenError as e:
                result.stop_reason = "circuit_open"
                result.error = e
                log_event(
                    self._logger,
                    logging.WARNING,
                    "circuit_open",
                    range=range_value,
                    retry_in_s=round(e.retry_in_s, 3),
                    collected=len(result.records),
                )
                return result
            except DeadlineExceededError as e:
                self._stop_on_deadline(result, range_value, e)
                return result
            except JobConnectorError as e:
                result.stop_reason = "error"
                result.error = e
                log_event(
                    self._logger,
                    logging.ERROR,
                    "page_fetch_failed",
                    range=range_value,
                    status_code=getattr(e, "status_code", None),
                    error_type=type(e).__name__,
                    error=str(e),
                    collected=len(result.records),
                )
                return result

            result.pages += 1
            if not page:
                result.stop_reason = "exhausted"
                return result

            remaining = options.max_results - len(result.records)
            result.records.extend(page[:remaining])
            if len(result.records) >= options.max_results:
                break

        result.stop_reason = "max_results"
        return result

    def _stop_on_deadline(
        self,
        result: PaginationResult,
        range_value: str,
        error: Optional[BaseException],
    ) -> None:
        result.stop_reason = "deadline"
        result.error = error
        log_event(
            self._logger,
            logging.WARNING,
            "run_deadline_reached",
            range=range_value,
            collected=len(result.records),
        )
