from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from jobmarket.job_connectors.connectors.base import BaseConnector
from jobmarket.job_connectors.logging_utils import get_logger, log_event
from jobmarket.job_connectors.models import ConnectorRunStats, FetchOptions, NormalizedJob
from jobmarket.job_connectors.sinks import InMemorySink, JobSink


@dataclass
class RunSummary:
    run_id: str
    connectors: List[ConnectorRunStats]
    jobs: List[NormalizedJob] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return sum(s.failed for s in self.connectors)


def run_connectors(
    connectors: Iterable[BaseConnector],
    options: Optional[FetchOptions] = None,
    *,
    sink: Optional[JobSink] = None,
    run_id: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
) -> RunSummary:
    """Run each connector in turn and upsert its jobs into ``sink``.

    A connector that raises despite its contract is recorded as failed and the
    run moves on to the next one.
    """
    run_id = run_id or str(uuid.uuid4())
    logger = get_logger(logger)
    sink = sink if sink is not None else InMemorySink()

    summaries: List[ConnectorRunStats] = []
    jobs: List[NormalizedJob] = []

    for connector in connectors:
        start = time.perf_counter()
        try:
            connector_jobs = connector.fetch_jobs(options)
            stats = connector.last_run_stats or ConnectorRunStats(connector_name=connector.name)
        except Exception as e:
            connector_jobs = []
            stats = ConnectorRunStats(connector_name=connector.name, failed=1, stop_reason="error")
            stats.error_type = type(e).__name__
            stats.duration_s = time.perf_counter() - start
            log_event(
                logger,
                logging.ERROR,
                "connector_failed",
                connector_name=connector.name,
                run_id=run_id,
                error_type=type(e).__name__,
                error=str(e),
            )

        for job in connector_jobs:
            action = sink.upsert(job)
            if action == "inserted":
                stats.inserted += 1
            elif action == "updated":
                stats.updated += 1
            else:
                stats.skipped += 1

        jobs.extend(connector_jobs)
        summaries.append(stats)

        log_event(
            logger,
            logging.INFO,
            "connector_run_summary",
            connector_name=stats.connector_name,
            run_id=run_id,
            normalized_ok=stats.normalized_ok,
            rejected=stats.rejected_total,
            inserted=stats.inserted,
            updated=stats.updated,
            skipped=stats.skipped,
            failed=stats.failed,
            stop_reason=stats.stop_reason,
        )

    sink.close()
    return RunSummary(run_id=run_id, connectors=summaries, jobs=jobs)
