from __future__ import annotations

import json
from pathlib import Path
from urllib.parse import parse_qs

import httpx
import pytest

from jobmarket.job_connectors.auth import EXPIRY_SKEW_S, CredentialLease
from jobmarket.job_connectors.errors import AuthError, ConfigurationError

TOKEN_URL = "https://auth.example.test/oauth2/access_token"
SECRET = "super-secret-value"


def _fixture(path: str) -> str:
    base = Path(__file__).resolve().parents[1] / "fixtures" / "job_connectors"
    return (base / path).read_text(encoding="utf-8")


class TokenEndpoint:
    def __init__(self, responses=None):
        self.requests = []
        self._responses = list(responses or [])

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self._responses:
            return self._responses.pop(0)
        payload = json.loads(_fixture("france_travail/token.json"))
        payload["access_token"] = f"tok-{len(self.requests)}"
        return httpx.Response(200, json=payload)


def _lease(endpoint, clock) -> CredentialLease:
    client = httpx.Client(transport=httpx.MockTransport(endpoint))
    return CredentialLease(
        client,
        client_id="client-123",
        client_secret=SECRET,
        token_url=TOKEN_URL,
        now=clock.monotonic,
    )


@pytest.mark.parametrize("client_id,client_secret", [("", SECRET), ("client-123", ""), ("  ", "  ")])
def test_missing_credentials_fail_at_construction(client_id, client_secret):
    with pytest.raises(ConfigurationError):
        CredentialLease(httpx.Client(), client_id=client_id, client_secret=client_secret)


def test_exchange_posts_client_credentials_form(clock):
    endpoint = TokenEndpoint()
    lease = _lease(endpoint, clock)

    credential = lease.ensure_token()

    assert credential.token == "tok-1"
    request = endpoint.requests[0]
    assert request.method == "POST"
    assert str(request.url) == TOKEN_URL
    form = parse_qs(request.content.decode())
    assert form["grant_type"] == ["client_credentials"]
    assert form["client_id"] == ["client-123"]
    assert form["client_secret"] == [SECRET]
    assert form["scope"] == ["api_offresdemploiv2 o2dsoffre"]


def test_valid_token_is_reused_until_expiry(clock):
    endpoint = TokenEndpoint()
    lease = _lease(endpoint, clock)

    first = lease.ensure_token()
    clock.advance(1499 - EXPIRY_SKEW_S - 1)
    assert lease.ensure_token() is first
    assert lease.exchanges == 1

    clock.advance(1)
    assert lease.ensure_token().token == "tok-2"
    assert lease.exchanges == 2


def test_refresh_discards_the_cached_credential(clock):
    endpoint = TokenEndpoint()
    lease = _lease(endpoint, clock)

    lease.ensure_token()
    refreshed = lease.refresh()

    assert refreshed.token == "tok-2"
    assert lease.credential is refreshed


def test_missing_expires_in_defaults_to_an_hour(clock):
    endpoint = TokenEndpoint([httpx.Response(200, json={"access_token": "abc"})])
    lease = _lease(endpoint, clock)

    credential = lease.ensure_token()

    assert credential.expires_at == pytest.approx(clock.monotonic() + 3600 - EXPIRY_SKEW_S)


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(401, json={"error": "invalid_client"}),
        httpx.Response(500, text="internal error"),
        httpx.Response(200, text="<html>not json</html>"),
        httpx.Response(200, json={"token_type": "Bearer"}),
        httpx.Response(200, json=["unexpected"]),
    ],
)
def test_failed_exchange_raises_auth_error_and_caches_nothing(clock, response):
    lease = _lease(TokenEndpoint([response]), clock)

    with pytest.raises(AuthError) as exc:
        lease.ensure_token()

    assert exc.value.url == TOKEN_URL
    assert lease.credential is None


def test_unreachable_token_endpoint_raises_auth_error(clock):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    lease = _lease(handler, clock)

    with pytest.raises(AuthError) as exc:
        lease.ensure_token()
    assert exc.value.status_code is None
    assert isinstance(exc.value.__cause__, httpx.ConnectError)


def test_secrets_are_never_logged(clock, caplog):
    endpoint = TokenEndpoint([httpx.Response(200, json={"access_token": "tok-very-secret-123456", "expires_in": 60})])
    lease = _lease(endpoint, clock)

    with caplog.at_level("DEBUG", logger="jobmarket.job_connectors"):
        lease.ensure_token()
        lease.invalidate()

    text = caplog.text
    assert SECRET not in text
    assert "tok-very-secret-123456" not in text
    assert "token_acquired" in text
    assert "token_invalidated" in text
