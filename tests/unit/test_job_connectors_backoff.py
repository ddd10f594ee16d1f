from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime

import pytest

from jobmarket.job_connectors.backoff import BackoffPolicy, Verdict, classify, parse_retry_after_s
from jobmarket.job_connectors.errors import (
    AuthError,
    CircuitOpenError,
    ClientError,
    InvalidResponseError,
    NetworkError,
    RateLimitError,
    ServerError,
)

URL = "https://api.example.test/offres/search"
NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "error,verdict",
    [
        (NetworkError(URL, "boom"), Verdict.RETRYABLE),
        (NetworkError(URL, "slow", timeout=True), Verdict.RETRYABLE),
        (RateLimitError(URL, "slow down"), Verdict.RETRYABLE),
        (ServerError(URL, 503, "unavailable"), Verdict.RETRYABLE),
        (AuthError(URL, 401, "expired"), Verdict.REAUTHENTICATE),
        (AuthError(URL, None, "token endpoint down"), Verdict.NOT_RETRYABLE),
        (ClientError(URL, 400, "bad range"), Verdict.NOT_RETRYABLE),
        (ClientError(URL, 403, "forbidden"), Verdict.NOT_RETRYABLE),
        (InvalidResponseError(URL, 200, "not json"), Verdict.NOT_RETRYABLE),
        (CircuitOpenError(10.0), Verdict.NOT_RETRYABLE),
        (ValueError("unrelated"), Verdict.NOT_RETRYABLE),
    ],
)
def test_classify_is_total_over_error_kinds(error, verdict):
    assert classify(error) is verdict


def test_should_retry_only_retryable_errors_within_attempt_budget():
    policy = BackoffPolicy(max_attempts=3)
    err = ServerError(URL, 500, "oops")

    assert policy.should_retry(1, err)
    assert policy.should_retry(2, err)
    assert not policy.should_retry(3, err)
    assert not policy.should_retry(1, ClientError(URL, 404, "gone"))
    assert not policy.should_retry(1, AuthError(URL, 401, "expired"))


def test_next_delay_grows_exponentially_and_is_capped():
    policy = BackoffPolicy(base_delay_s=1.0, max_delay_s=5.0)
    err = NetworkError(URL, "reset")

    assert [policy.next_delay(n, err) for n in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 5.0]


def test_rate_limit_uses_its_own_base_delay():
    policy = BackoffPolicy(base_delay_s=1.0, rate_limit_base_delay_s=5.0)

    assert policy.next_delay(1, RateLimitError(URL, "429")) == 5.0
    assert policy.next_delay(2, RateLimitError(URL, "429")) == 10.0


def test_retry_after_seconds_is_a_lower_bound():
    policy = BackoffPolicy(rate_limit_base_delay_s=0.5, utcnow=lambda: NOW)

    assert policy.next_delay(1, RateLimitError(URL, "429", retry_after="2")) >= 2.0
    # A hint below the computed delay does not shorten it.
    assert policy.next_delay(4, RateLimitError(URL, "429", retry_after="1")) == 4.0


def test_retry_after_http_date_is_converted_to_a_delay():
    when = format_datetime(NOW + timedelta(seconds=30), usegmt=True)
    policy = BackoffPolicy(rate_limit_base_delay_s=0.0, utcnow=lambda: NOW)

    assert policy.next_delay(1, RateLimitError(URL, "429", retry_after=when)) == pytest.approx(30.0)


@pytest.mark.parametrize("value", [None, "", "   ", "soon", "Wed, 21 Oct 2015 07:28:00 GMT"])
def test_parse_retry_after_ignores_missing_garbage_and_past_dates(value):
    assert parse_retry_after_s(value, now=NOW) is None


def test_jitter_stays_within_bounds():
    policy = BackoffPolicy(base_delay_s=1.0, jitter_s=0.5, rng=random.Random(42))
    err = ServerError(URL, 502, "bad gateway")

    for _ in range(20):
        delay = policy.next_delay(1, err)
        assert 1.0 <= delay <= 1.5
