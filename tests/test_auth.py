import subprocess
from datetime import datetime, timedelta, timezone

import pytest

from blackcat import auth
from blackcat.auth import CliTokenProvider, StaticTokenProvider, run_az_cli
from blackcat.config import ARM_RESOURCE, GRAPH_RESOURCE
from blackcat.errors import AuthenticationError, AzureCliError


def _completed(stdout="", stderr="", returncode=0):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def az(monkeypatch):
    calls = []
    outputs = []

    def fake_run(args, capture_output, text):
        calls.append(args)
        return outputs.pop(0)

    monkeypatch.setattr(auth.subprocess, "run", fake_run)
    return calls, outputs


def test_run_az_cli_parses_json(az):
    calls, outputs = az
    outputs.append(_completed('{"tenantId": "t-1"}'))

    result = run_az_cli("account show")

    assert calls == [["az", "account", "show"]]
    assert result["success"]
    assert result["json"] == {"tenantId": "t-1"}


def test_run_az_cli_detects_login_problems(az):
    _, outputs = az
    outputs.append(_completed(stderr="ERROR: Please run 'az login' to setup account.", returncode=1))

    with pytest.raises(AuthenticationError):
        run_az_cli(["account", "show"])


def test_run_az_cli_reports_malformed_commands(az):
    _, outputs = az
    outputs.append(_completed(stderr="'acount' is misspelled or not recognized by the system.", returncode=2))

    with pytest.raises(AzureCliError, match="malformed"):
        run_az_cli(["acount", "show"])


def test_run_az_cli_rejects_non_json_output(az):
    _, outputs = az
    outputs.append(_completed("not json at all"))

    with pytest.raises(AzureCliError, match="not JSON"):
        run_az_cli(["account", "show"])


def test_missing_az_binary(monkeypatch):
    def fake_run(args, capture_output, text):
        raise FileNotFoundError("az")

    monkeypatch.setattr(auth.subprocess, "run", fake_run)

    with pytest.raises(AzureCliError, match="not found"):
        run_az_cli(["account", "show"])


def test_cli_token_provider_caches_per_resource(az):
    calls, outputs = az
    expires = int((datetime.now(timezone.utc) + timedelta(hours=1)).timestamp())
    outputs.append(_completed(f'{{"accessToken": "arm", "expires_on": {expires}}}'))
    outputs.append(_completed(f'{{"accessToken": "graph", "expires_on": {expires}}}'))

    provider = CliTokenProvider(tenant_id="t-1")

    assert provider.get_token(ARM_RESOURCE) == "arm"
    assert provider.get_token(ARM_RESOURCE) == "arm"
    assert provider.get_token(GRAPH_RESOURCE) == "graph"
    assert len(calls) == 2
    assert calls[0][-2:] == ["--tenant", "t-1"]


def test_cli_token_provider_refreshes_near_expiry(az):
    calls, outputs = az
    soon = int((datetime.now(timezone.utc) + timedelta(minutes=2)).timestamp())
    outputs.append(_completed(f'{{"accessToken": "old", "expires_on": {soon}}}'))
    outputs.append(_completed(f'{{"accessToken": "new", "expires_on": {soon + 3600}}}'))

    provider = CliTokenProvider()

    assert provider.get_token(ARM_RESOURCE) == "old"
    assert provider.get_token(ARM_RESOURCE) == "new"


def test_static_tokens_from_env(monkeypatch):
    monkeypatch.setenv("BLACKCAT_ARM_TOKEN", "arm-token")
    monkeypatch.delenv("BLACKCAT_GRAPH_TOKEN", raising=False)

    provider = StaticTokenProvider.from_env()

    assert provider.get_token(ARM_RESOURCE) == "arm-token"
    with pytest.raises(AuthenticationError):
        provider.get_token(GRAPH_RESOURCE)


def test_no_static_tokens(monkeypatch):
    monkeypatch.delenv("BLACKCAT_ARM_TOKEN", raising=False)
    monkeypatch.delenv("BLACKCAT_GRAPH_TOKEN", raising=False)
    assert StaticTokenProvider.from_env() is None
