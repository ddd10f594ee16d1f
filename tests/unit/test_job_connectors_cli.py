from __future__ import annotations

import json

import httpx

import scripts.pipeline.run_job_connectors as run_job_connectors
from jobmarket.config.settings import ConnectorSettings, FranceTravailSettings, Settings
from jobmarket.job_connectors.connectors.france_travail import FranceTravailConnector
from jobmarket.job_connectors.registry import available_connectors


def _settings(**ft) -> Settings:
    return Settings(france_travail=FranceTravailSettings(**ft), connectors=ConnectorSettings(request_delay_s=0.0))


def test_settings_build_connector_config():
    settings = ConnectorSettings(max_retry_attempts=5, circuit_breaker_threshold=2, enable_circuit_breaker=False)

    config = settings.to_connector_config()

    assert config.max_retry_attempts == 5
    assert config.circuit_breaker_threshold == 2
    assert config.enable_circuit_breaker is False
    assert config.default_max_results == 150


def test_settings_read_prefixed_environment(monkeypatch):
    monkeypatch.setenv("FRANCE_TRAVAIL_CLIENT_ID", "env-client")
    monkeypatch.setenv("FRANCE_TRAVAIL_CLIENT_SECRET", "env-secret")
    monkeypatch.setenv("JOB_CONNECTORS_MAX_RETRY_ATTEMPTS", "7")
    monkeypatch.setenv("JOB_CONNECTORS_ENABLED", "france_travail, other")

    settings = Settings()

    assert settings.france_travail.has_credentials
    assert settings.connectors.max_retry_attempts == 7
    assert settings.connectors.enabled_names == ["france_travail", "other"]


def test_registry_skips_unconfigured_connectors():
    assert available_connectors(_settings(client_id="", client_secret=None)) == {}

    registry = available_connectors(_settings(client_id="id", client_secret="secret", keywords="python"))

    connector = registry["france_travail"]
    assert isinstance(connector, FranceTravailConnector)
    connector.close()


def test_cli_lists_connectors(monkeypatch, capsys):
    monkeypatch.setattr(run_job_connectors, "get_settings", lambda: _settings(client_id="id", client_secret="s"))

    rc = run_job_connectors.main(["--list"])

    out = capsys.readouterr().out
    assert rc == 0
    assert "france_travail" in out


def test_cli_prints_jobs_as_json_lines(monkeypatch, capsys):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            return httpx.Response(200, json={"access_token": "tok", "expires_in": 1499})
        assert request.url.params["motsCles"] == "python"
        assert request.url.params["departement"] == "75"
        assert request.url.params["range"] == "0-1"
        offers = [{"id": f"C{i}", "intitule": "Dev Python"} for i in range(2)]
        return httpx.Response(200, json={"resultats": offers})

    connector = FranceTravailConnector("id", "secret", transport=httpx.MockTransport(handler))
    monkeypatch.setattr(run_job_connectors, "get_settings", lambda: _settings(client_id="id", client_secret="s"))
    monkeypatch.setattr(run_job_connectors, "available_connectors", lambda _settings: {"france_travail": connector})

    rc = run_job_connectors.main(["--max-results", "2", "--keywords", "python", "--departement", "75"])

    captured = capsys.readouterr()
    lines = [json.loads(line) for line in captured.out.splitlines()]
    assert rc == 0
    assert [row["external_id"] for row in lines] == ["francetravail-C0", "francetravail-C1"]
    assert "Run summary" in captured.err


def test_cli_exits_non_zero_when_a_connector_fails(monkeypatch, capsys):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            return httpx.Response(200, json={"access_token": "tok"})
        return httpx.Response(400, text="bad request")

    connector = FranceTravailConnector("id", "secret", transport=httpx.MockTransport(handler))
    monkeypatch.setattr(run_job_connectors, "get_settings", lambda: _settings(client_id="id", client_secret="s"))
    monkeypatch.setattr(run_job_connectors, "available_connectors", lambda _settings: {"france_travail": connector})

    assert run_job_connectors.main(["--max-results", "5"]) == 1
    assert capsys.readouterr().out == ""
