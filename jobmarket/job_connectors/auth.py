"""OAuth2 client-credentials lease for the France Travail partner APIs.

The lease hands out a cached bearer token while it is still valid and performs
a new ``client_credentials`` exchange otherwise. Callers that see the token
rejected (HTTP 401) call :meth:`CredentialLease.refresh`, which drops the
cached credential before exchanging again.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, NoReturn, Optional

import httpx

from jobmarket.job_connectors.errors import AuthError, ConfigurationError
from jobmarket.job_connectors.logging_utils import get_logger, log_event, redact_secret
from jobmarket.job_connectors.models import Credential

DEFAULT_TOKEN_URL = "https://entreprise.francetravail.fr/connexion/oauth2/access_token?realm=%2Fpartenaire"
DEFAULT_SCOPE = "api_offresdemploiv2 o2dsoffre"
DEFAULT_EXPIRES_IN_S = 3600
# Renew slightly early so a token never expires mid-request.
EXPIRY_SKEW_S = 10.0


class CredentialLease:
    def __init__(
        self,
        client: httpx.Client,
        *,
        client_id: str,
        client_secret: str,
        token_url: str = DEFAULT_TOKEN_URL,
        scope: str = DEFAULT_SCOPE,
        now: Callable[[], float] = time.monotonic,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if not (client_id or "").strip() or not (client_secret or "").strip():
            raise ConfigurationError("France Travail API credentials (client_id and client_secret) are required")
        self._client = client
        self._client_id = client_id
        self._client_secret = client_secret
        self._token_url = token_url
        self._scope = scope
        self._now = now
        self._logger = get_logger(logger)
        self._credential: Optional[Credential] = None
        self.exchanges = 0

    @property
    def credential(self) -> Optional[Credential]:
        return self._credential

    def ensure_token(self) -> Credential:
        current = self._credential
        if current is not None and current.is_valid(self._now()):
            return current
        self._credential = self._exchange()
        return self._credential

    def invalidate(self) -> None:
        if self._credential is not None:
            log_event(self._logger, logging.INFO, "token_invalidated", client_id=self._client_id)
        self._credential = None

    def refresh(self) -> Credential:
        self.invalidate()
        return self.ensure_token()

    def _exchange(self) -> Credential:
        self.exchanges += 1
        data = {
            "grant_type": "client_credentials",
            "client_id": self._client_id,
            "client_secret": self._client_secret,
            "scope": self._scope,
        }
        try:
            response = self._client.post(
                self._token_url,
                data=data,
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            self._fail(None, f"Token endpoint unreachable: {e}", e)

        if response.status_code != 200:
            self._fail(
                response.status_code,
                f"Token exchange failed ({response.status_code}): {response.text[:400]}",
            )

        try:
            payload = response.json()
        except ValueError as e:
            self._fail(response.status_code, f"Token endpoint returned invalid JSON: {e}", e)

        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not isinstance(token, str) or not token.strip():
            self._fail(response.status_code, "Invalid token response: missing access_token")

        expires_in = payload.get("expires_in") or DEFAULT_EXPIRES_IN_S
        try:
            expires_in_s = float(expires_in)
        except (TypeError, ValueError):
            expires_in_s = float(DEFAULT_EXPIRES_IN_S)

        credential = Credential(token=token, expires_at=self._now() + expires_in_s - EXPIRY_SKEW_S)
        log_event(
            self._logger,
            logging.INFO,
            "token_acquired",
            client_id=self._client_id,
            token=redact_secret(token, keep=6),
            expires_in_s=expires_in_s,
        )
        return credential

    def _fail(self, status_code: Optional[int], message: str, cause: Optional[BaseException] = None) -> NoReturn:
        log_event(
            self._logger,
            logging.ERROR,
            "token_failed",
            client_id=self._client_id,
            status_code=status_code,
            error=message,
        )
        raise AuthError(self._token_url, status_code, message) from cause
