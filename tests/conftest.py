"""Shared fixtures: a running mock server, a target pointing at it, and no real sleeping."""

import pytest

from scim_outbound import http_client
from scim_outbound.models import IdentitySnapshot, SyncTarget
from tests.mock_scim_server import MockSCIMServer


@pytest.fixture
def server():
    with MockSCIMServer() as s:
        yield s


@pytest.fixture
def sleeps(monkeypatch):
    """Replace backoff sleeps with a recorder; yields the list of requested delays."""
    delays = []
    monkeypatch.setattr(http_client.time, "sleep", delays.append)
    return delays


@pytest.fixture
def make_target(server):
    def _make(name="directory", **overrides):
        values = {
            "name": name,
            "base_url": server.base_url,
            "token": "test-token",
            "timeout": 5.0,
        }
        values.update(overrides)
        return SyncTarget(**values)
    return _make


@pytest.fixture
def jdoe():
    return IdentitySnapshot(
        user_id="u-1",
        username="jdoe",
        first_name="Jane",
        last_name="Doe",
        email="jane.doe@example.com",
        enabled=True,
        attributes={"scim_username": ["jane.d"]},
        groups=("staff",),
    )
