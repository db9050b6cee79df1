"""Tests for the scim-outbound CLI (click CliRunner against the mock server)."""

import json

import pytest
from click.testing import CliRunner
from structlog.testing import capture_logs

from scim_outbound import cli as cli_module
from scim_outbound.cli import cli


@pytest.fixture(autouse=True)
def no_logging_setup(monkeypatch):
    """Keep log lines out of the command output and leave global logging alone."""
    monkeypatch.setattr(cli_module, "configure_logging", lambda **kwargs: None)
    with capture_logs():
        yield


@pytest.fixture
def runner():
    return CliRunner()


def _write_config(tmp_path, base_url, **extra):
    entry = {"name": "mock", "base_url": base_url, "token": "t"}
    entry.update(extra)
    path = tmp_path / "targets.json"
    path.write_text(json.dumps({"tenants": {"acme": [entry]}}))
    return str(path)


def _write_user(tmp_path, **overrides):
    record = {
        "user_id": "u-1",
        "username": "jdoe",
        "first_name": "Jane",
        "last_name": "Doe",
        "email": "jane.doe@example.com",
        "enabled": True,
        "groups": ["staff"],
    }
    record.update(overrides)
    path = tmp_path / "user.json"
    path.write_text(json.dumps(record))
    return str(path)


def test_check_valid(runner, tmp_path, server):
    config = _write_config(tmp_path, server.base_url)
    result = runner.invoke(cli, ["check", config])
    assert result.exit_code == 0
    assert "acme/mock" in result.output


def test_check_probe_json(runner, tmp_path, server):
    config = _write_config(tmp_path, server.base_url)
    result = runner.invoke(cli, ["check", config, "--probe", "--json"])
    assert result.exit_code == 0
    report = json.loads(result.output)
    assert report["targets"][0]["reachable"] is True


def test_check_invalid_config(runner, tmp_path):
    config = _write_config(tmp_path, "ftp://nowhere")
    result = runner.invoke(cli, ["check", config, "--json"])
    assert result.exit_code == 1
    assert json.loads(result.output)["valid"] is False


def test_push_creates_then_patches(runner, tmp_path, server):
    config = _write_config(tmp_path, server.base_url)
    user = _write_user(tmp_path)

    first = runner.invoke(cli, ["push", config, user, "--tenant", "acme", "--action", "create", "--json"])
    assert first.exit_code == 0
    assert json.loads(first.output)["outcomes"]["mock"]["outcome"] == "created"

    second = runner.invoke(cli, ["push", config, user, "--tenant", "acme", "--action", "update", "--json"])
    assert second.exit_code == 0
    assert json.loads(second.output)["outcomes"]["mock"]["outcome"] == "patched"
    assert len(server.users) == 1


def test_push_delete_deactivates(runner, tmp_path, server):
    uid = server.add_user("jdoe", active=True)
    config = _write_config(tmp_path, server.base_url)
    user = _write_user(tmp_path)
    result = runner.invoke(cli, ["push", config, user, "--tenant", "acme", "--action", "delete"])
    assert result.exit_code == 0
    assert "deactivated" in result.output
    assert server.users[uid]["active"] is False


def test_push_respects_filter_group(runner, tmp_path, server):
    config = _write_config(tmp_path, server.base_url, filter_group="admins")
    user = _write_user(tmp_path)
    result = runner.invoke(cli, ["push", config, user, "--tenant", "acme", "--action", "update", "--json"])
    assert result.exit_code == 0
    assert json.loads(result.output)["outcomes"]["mock"]["outcome"] == "noop"
    assert server.requests == []


def test_push_failure_exit_code(runner, tmp_path, server):
    config = _write_config(tmp_path, server.base_url, user_name_strategy="email")
    user = _write_user(tmp_path, email="")
    result = runner.invoke(cli, ["push", config, user, "--tenant", "acme", "--action", "create"])
    assert result.exit_code == 1


def test_push_invalid_user_record(runner, tmp_path, server):
    config = _write_config(tmp_path, server.base_url)
    user = tmp_path / "user.json"
    user.write_text(json.dumps({"username": "no-id"}))
    result = runner.invoke(cli, ["push", config, str(user), "--tenant", "acme", "--action", "create"])
    assert result.exit_code == 1
    assert "Invalid user record" in result.output


def test_push_unknown_tenant(runner, tmp_path, server):
    config = _write_config(tmp_path, server.base_url)
    user = _write_user(tmp_path)
    result = runner.invoke(cli, ["push", config, user, "--tenant", "globex", "--action", "create"])
    assert result.exit_code == 0
    assert "No targets configured" in result.output
