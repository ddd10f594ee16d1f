"""Job offer ingestion connectors.

This package provides:
- A connector interface (one call -> normalized jobs, never raises)
- The France Travail API connector with token lease, retries and circuit breaker
- Normalization utilities to emit canonical NormalizedJob records
"""

from jobmarket.job_connectors.models import ConnectorRunStats, FetchOptions, NormalizedJob, SearchFilters

__all__ = ["ConnectorRunStats", "FetchOptions", "NormalizedJob", "SearchFilters"]
