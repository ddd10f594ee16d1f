from __future__ import annotations

from typing import Optional


class JobConnectorError(RuntimeError):
    pass


class ConfigurationError(JobConnectorError, ValueError):
    """Raised synchronously when a connector is built with unusable settings."""


class UpstreamError(JobConnectorError):
    def __init__(self, url: str, status_code: Optional[int], message: str) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class AuthError(UpstreamError):
    pass


class NetworkError(UpstreamError):
    def __init__(self, url: str, message: str, *, timeout: bool = False) -> None:
        super().__init__(url, None, message)
        self.timeout = timeout


class ServerError(UpstreamError):
    pass


class RateLimitError(UpstreamError):
    def __init__(self, url: str, message: str, *, retry_after: Optional[str] = None) -> None:
        super().__init__(url, 429, message)
        self.retry_after = retry_after


class ClientError(UpstreamError):
    pass


class InvalidResponseError(UpstreamError):
    pass


class CircuitOpenError(JobConnectorError):
    def __init__(self, retry_in_s: float) -> None:
        super().__init__(f"Circuit breaker is open; next trial call allowed in {retry_in_s:.1f}s")
        self.retry_in_s = retry_in_s


class DeadlineExceededError(JobConnectorError):
    pass


class ValidationRejection(JobConnectorError):
    """A raw record that cannot become a NormalizedJob. Returned, not raised, by the normalizer."""

    MISSING_ID = "missing id"
    NO_TECHNOLOGIES = "no technologies detected"
    NORMALIZATION_ERROR = "normalization error"

    def __init__(self, reason: str, record_id: Optional[str] = None) -> None:
        super().__init__(f"Record {record_id or '<no id>'} rejected: {reason}")
        self.reason = reason
        self.record_id = record_id
