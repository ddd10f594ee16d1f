from __future__ import annotations

import abc
from typing import List, Optional

from jobmarket.job_connectors.models import ConnectorRunStats, FetchOptions, NormalizedJob


class BaseConnector(abc.ABC):
    """Connector interface: one call fetches, normalizes and returns a run's jobs."""

    last_run_stats: Optional[ConnectorRunStats] = None

    @property
    @abc.abstractmethod
    def name(self) -> str:
        raise NotImplementedError

    def get_source_name(self) -> str:
        return self.name

    @abc.abstractmethod
    def fetch_jobs(self, options: Optional[FetchOptions] = None) -> List[NormalizedJob]:
        """Never raises; returns an empty or partial list when the upstream fails."""
        raise NotImplementedError

    def close(self) -> None:
        return None
