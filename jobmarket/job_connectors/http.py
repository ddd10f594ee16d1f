from __future__ import annotations

import logging
import time
from typing import Callable, Dict, List, Optional
from urllib.parse import urlsplit

import httpx

from jobmarket.job_connectors.auth import CredentialLease
from jobmarket.job_connectors.backoff import BackoffPolicy, Verdict
from jobmarket.job_connectors.circuit_breaker import CircuitBreaker
from jobmarket.job_connectors.errors import (
    AuthError,
    ClientError,
    DeadlineExceededError,
    InvalidResponseError,
    NetworkError,
    RateLimitError,
    ServerError,
    UpstreamError,
)
from jobmarket.job_connectors.logging_utils import get_logger, log_event
from jobmarket.job_connectors.models import RawRecord

DEFAULT_API_URL = "https://api.francetravail.io/partenaire/offresdemploi/v2/offres/search"


def _host_of(url: str) -> str:
    parts = urlsplit(url)
    host = (parts.hostname or "").lower()
    return host


def error_from_response(url: str, response: httpx.Response) -> Optional[UpstreamError]:
    """Map an HTTP error status onto the connector's error taxonomy; ``None`` for success."""
    status = int(response.status_code)
    if status < 400:
        return None
    snippet = response.text[:300] if response.content else ""
    if status == 401:
        return AuthError(url, status, f"HTTP 401 for {url}: credential rejected")
    if status == 429:
        return RateLimitError(url, f"HTTP 429 for {url}: rate limited", retry_after=response.headers.get("Retry-After"))
    if status >= 500:
        return ServerError(url, status, f"HTTP {status} for {url}: {snippet}")
    return ClientError(url, status, f"HTTP {status} for {url}: {snippet}")


def error_from_exception(url: str, exc: httpx.HTTPError) -> UpstreamError:
    if isinstance(exc, httpx.TimeoutException):
        return NetworkError(url, f"HTTP timeout for {url}: {exc}", timeout=True)
    return NetworkError(url, f"HTTP transport error for {url}: {exc}")


class PerHostRateLimiter:
    def __init__(
        self,
        *,
        min_interval_s: float,
        now: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._min_interval_s = max(0.0, float(min_interval_s))
        self._now = now
        self._sleep = sleep
        self._next_allowed: dict[str, float] = {}

    def wait(self, host: str) -> None:
        if self._min_interval_s <= 0:
            return
        ts = self._next_allowed.get(host, 0.0)
        now = self._now()
        if now < ts:
            self._sleep(ts - now)
        self._next_allowed[host] = self._now() + self._min_interval_s


class PageFetcher:
    """One bounded listing call, guarded by the breaker and retried per the backoff policy.

    A 401 invalidates the lease's credential and the same page is retried once
    with a freshly exchanged token; a second 401 is terminal. Token exchange
    failures are never retried here.
    """

    def __init__(
        self,
        client: httpx.Client,
        lease: CredentialLease,
        *,
        backoff: BackoffPolicy,
        breaker: CircuitBreaker,
        api_url: str = DEFAULT_API_URL,
        request_delay_s: float = 0.15,
        now: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._client = client
        self._lease = lease
        self._backoff = backoff
        self._breaker = breaker
        self._api_url = api_url
        self._now = now
        self._sleep = sleep
        self._logger = get_logger(logger)
        self._rate_limiter = PerHostRateLimiter(min_interval_s=request_delay_s, now=now, sleep=sleep)

    def fetch_page(
        self,
        range_value: str,
        params: Optional[Dict[str, str]] = None,
        *,
        deadline: Optional[float] = None,
    ) -> List[RawRecord]:
        self._breaker.before_call()
        try:
            records = self._fetch_with_retries(range_value, dict(params or {}), deadline)
        except DeadlineExceededError:
            # Cancelled by the caller, not an upstream verdict.
            self._breaker.abandon_call()
            raise
        except Exception:
            self._breaker.record_failure()
            raise
        self._breaker.record_success()
        return records

    def _check_deadline(self, deadline: Optional[float], upcoming_sleep_s: float = 0.0) -> None:
        if deadline is None:
            return
        if self._now() + upcoming_sleep_s >= deadline:
            raise DeadlineExceededError(f"Run deadline reached before fetching {self._api_url}")

    def _fetch_with_retries(
        self,
        range_value: str,
        params: Dict[str, str],
        deadline: Optional[float],
    ) -> List[RawRecord]:
        params["range"] = range_value
        failures = 0
        reauthenticated = False

        while True:
            self._check_deadline(deadline)
            token = self._lease.ensure_token().token
            try:
                return self._request_once(token, params)
            except UpstreamError as e:
                verdict = self._backoff.classify(e)
                if verdict is Verdict.REAUTHENTICATE and not reauthenticated:
                    reauthenticated = True
                    log_event(
                        self._logger,
                        logging.WARNING,
                        "page_fetch_retry",
                        range=range_value,
                        reason="reauthenticate",
                        status_code=e.status_code,
                    )
                    self._lease.refresh()
                    continue

                if verdict is Verdict.RETRYABLE:
                    failures += 1
                    if self._backoff.should_retry(failures, e):
                        delay = self._backoff.next_delay(failures, e)
                        self._check_deadline(deadline, delay)
                        log_event(
                            self._logger,
                            logging.WARNING,
                            "page_fetch_retry",
                            range=range_value,
                            reason="rate_limit" if isinstance(e, RateLimitError) else "transient",
                            attempt=failures,
                            max_attempts=self._backoff.max_attempts,
                            delay_s=round(delay, 3),
                            status_code=e.status_code,
                            error_type=type(e).__name__,
                            error=str(e),
                        )
                        self._sleep(delay)
                        continue
                raise

    def _request_once(self, token: str, params: Dict[str, str]) -> List[RawRecord]:
        url = self._api_url
        self._rate_limiter.wait(_host_of(url))
        start = self._now()
        try:
            resp = self._client.get(
                url,
                params=params,
                headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            raise error_from_exception(url, e) from e

        error = error_from_response(url, resp)
        if error is not None:
            raise error

        records: List[RawRecord] = []
        # 204 No Content: the requested range lies past the end of the result set.
        if resp.status_code != 204 and resp.content:
            try:
                payload = resp.json()
            except ValueError as e:
                raise InvalidResponseError(url, resp.status_code, f"Invalid JSON response: {e}") from e
            if not isinstance(payload, dict):
                raise InvalidResponseError(url, resp.status_code, "Listing response is not a JSON object")
            results = payload.get("resultats") or []
            if not isinstance(results, list):
                raise InvalidResponseError(url, resp.status_code, "Listing response 'resultats' is not an array")
            records = results

        log_event(
            self._logger,
            logging.DEBUG,
            "page_fetch_ok",
            range=params.get("range"),
            status_code=resp.status_code,
            records=len(records),
            duration_s=round(self._now() - start, 3),
        )
        return records
