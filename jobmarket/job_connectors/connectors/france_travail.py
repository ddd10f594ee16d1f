"""France Travail "offres d'emploi v2" connector.

Composes the credential lease, backoff policy, circuit breaker, page fetcher,
paginator and field normalizer into a single ``fetch_jobs`` call. Every
failure is absorbed here: callers get a possibly empty or partial list of
jobs, and the reasons end up in the log and in ``last_run_stats``.

One instance must not be used from several threads at once.
"""

from __future__ import annotations

import logging
import random
import time
from datetime import datetime, timezone
from types import TracebackType
from typing import Callable, List, Optional

import httpx

from jobmarket.job_connectors.auth import DEFAULT_SCOPE, DEFAULT_TOKEN_URL, CredentialLease
from jobmarket.job_connectors.backoff import BackoffPolicy
from jobmarket.job_connectors.circuit_breaker import CircuitBreaker
from jobmarket.job_connectors.config import ConnectorConfig
from jobmarket.job_connectors.connectors.base import BaseConnector
from jobmarket.job_connectors.errors import AuthError, ConfigurationError, ValidationRejection
from jobmarket.job_connectors.http import DEFAULT_API_URL, PageFetcher
from jobmarket.job_connectors.logging_utils import get_logger, log_event
from jobmarket.job_connectors.models import ConnectorRunStats, FetchOptions, NormalizedJob, SearchFilters
from jobmarket.job_connectors.normalize import FieldNormalizer
from jobmarket.job_connectors.pagination import Paginator
from jobmarket.job_connectors.regions import RegionRepository, RegionResolver

USER_AGENT = "JobMarketIngestion/0.1"


class FranceTravailConnector(BaseConnector):
    SOURCE_NAME = "france_travail"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        region_repository: Optional[RegionRepository] = None,
        config: Optional[ConnectorConfig] = None,
        *,
        token_url: str = DEFAULT_TOKEN_URL,
        api_url: str = DEFAULT_API_URL,
        scope: str = DEFAULT_SCOPE,
        default_filters: Optional[SearchFilters] = None,
        logger: Optional[logging.Logger] = None,
        transport: Optional[httpx.BaseTransport] = None,
        now: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        utcnow: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        rng: Optional[random.Random] = None,
    ) -> None:
        if not (client_id or "").strip() or not (client_secret or "").strip():
            raise ConfigurationError("France Travail API credentials (client_id and client_secret) are required")

        self.config = config or ConnectorConfig()
        self._default_filters = default_filters or SearchFilters()
        self._now = now
        self._logger = get_logger(logger)
        self.last_run_stats: Optional[ConnectorRunStats] = None

        self._client = httpx.Client(
            timeout=httpx.Timeout(self.config.timeout_s),
            transport=transport,
            headers={"User-Agent": USER_AGENT},
        )
        self.lease = CredentialLease(
            self._client,
            client_id=client_id,
            client_secret=client_secret,
            token_url=token_url,
            scope=scope,
            now=now,
            logger=self._logger,
        )
        self.backoff = BackoffPolicy(
            max_attempts=self.config.max_retry_attempts,
            base_delay_s=self.config.retry_delay_s,
            rate_limit_base_delay_s=self.config.rate_limit_delay_s,
            max_delay_s=self.config.max_delay_s,
            jitter_s=self.config.jitter_s,
            rng=rng,
            utcnow=utcnow,
        )
        self.breaker = CircuitBreaker(
            threshold=self.config.circuit_breaker_threshold,
            reset_timeout_s=self.config.circuit_breaker_reset_s,
            enabled=self.config.enable_circuit_breaker,
            now=now,
            logger=self._logger,
            name=self.SOURCE_NAME,
        )
        fetcher = PageFetcher(
            self._client,
            self.lease,
            backoff=self.backoff,
            breaker=self.breaker,
            api_url=api_url,
            request_delay_s=self.config.request_delay_s,
            now=now,
            sleep=sleep,
            logger=self._logger,
        )
        self._paginator = Paginator(fetcher, now=now, logger=self._logger)
        self.regions = RegionResolver(region_repository, logger=self._logger)
        self._normalizer = FieldNormalizer(self.regions, utcnow=utcnow)

    @property
    def name(self) -> str:
        return self.SOURCE_NAME

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "FranceTravailConnector":
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.close()

    def build_options(
        self,
        *,
        max_results: Optional[int] = None,
        filters: Optional[SearchFilters] = None,
    ) -> FetchOptions:
        return FetchOptions(
            max_results=self.config.default_max_results if max_results is None else max_results,
            page_size=self.config.page_size,
            filters=filters or self._default_filters,
        )

    def fetch_jobs(
        self,
        options: Optional[FetchOptions] = None,
        *,
        max_results: Optional[int] = None,
        filters: Optional[SearchFilters] = None,
    ) -> List[NormalizedJob]:
        stats = ConnectorRunStats(connector_name=self.name)
        self.last_run_stats = stats
        start = self._now()
        try:
            if options is None:
                options = self.build_options(max_results=max_results, filters=filters)
            return self._run(options, stats, start)
        except Exception as e:
            stats.failed += 1
            stats.stop_reason = "error"
            stats.error_type = type(e).__name__
            log_event(
                self._logger,
                logging.ERROR,
                "connector_failed",
                connector_name=self.name,
                error_type=type(e).__name__,
                error=str(e),
            )
            return []
        finally:
            stats.duration_s = self._now() - start
            log_event(
                self._logger,
                logging.INFO,
                "connector_done",
                connector_name=self.name,
                pages=stats.pages,
                raw_records=stats.raw_records,
                normalized_ok=stats.normalized_ok,
                rejected=stats.rejected,
                failed=stats.failed,
                stop_reason=stats.stop_reason,
                duration_s=round(stats.duration_s, 3),
            )

    def _run(self, options: FetchOptions, stats: ConnectorRunStats, start: float) -> List[NormalizedJob]:
        log_event(
            self._logger,
            logging.INFO,
            "connector_start",
            connector_name=self.name,
            max_results=options.max_results,
            page_size=options.page_size,
        )
        if options.max_results == 0:
            stats.stop_reason = "max_results"
            return []

        if self.breaker.is_open():
            stats.stop_reason = "circuit_open"
            log_event(
                self._logger,
                logging.WARNING,
                "circuit_open",
                connector_name=self.name,
                stage="token",
            )
            return []

        try:
            self.lease.ensure_token()
        except AuthError as e:
            self.breaker.record_failure()
            stats.failed += 1
            stats.stop_reason = "auth_error"
            stats.error_type = type(e).__name__
            return []

        run_timeout_s = options.run_timeout_s if options.run_timeout_s is not None else self.config.run_timeout_s
        deadline = start + run_timeout_s if run_timeout_s is not None else None
        result = self._paginator.fetch_all(options, deadline=deadline)
        stats.pages = result.pages
        stats.raw_records = len(result.records)
        stats.stop_reason = result.stop_reason
        if result.error is not None:
            stats.error_type = type(result.error).__name__
            if result.stop_reason == "error":
                stats.failed += 1

        jobs: List[NormalizedJob] = []
        for raw in result.records:
            try:
                outcome = self._normalizer.normalize(raw)
            except Exception as e:
                raw_id = raw.get("id") if isinstance(raw, dict) else None
                outcome = ValidationRejection(
                    ValidationRejection.NORMALIZATION_ERROR,
                    str(raw_id) if raw_id is not None else None,
                )
                log_event(
                    self._logger,
                    logging.WARNING,
                    "record_normalization_failed",
                    connector_name=self.name,
                    record_id=outcome.record_id,
                    error_type=type(e).__name__,
                    error=str(e),
                )
            if isinstance(outcome, ValidationRejection):
                stats.record_rejection(outcome.reason)
                log_event(
                    self._logger,
                    logging.DEBUG,
                    "record_rejected",
                    connector_name=self.name,
                    record_id=outcome.record_id,
                    reason=outcome.reason,
                )
                continue
            jobs.append(outcome)

        stats.normalized_ok = len(jobs)
        return jobs
