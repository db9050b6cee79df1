"""Tests for the payload factory: wire shapes of create, patch and deactivate bodies."""

import json

from scim_outbound.models import IdentitySnapshot
from scim_outbound.payload_factory import (
    PATCH_OP_SCHEMA,
    USER_SCHEMA,
    make_deactivate_patch,
    make_user,
    make_user_patch,
)


def test_make_user(jdoe):
    payload = make_user(jdoe, "jane.doe@example.com")
    assert payload == {
        "schemas": [USER_SCHEMA],
        "userName": "jane.doe@example.com",
        "name": {"givenName": "Jane", "familyName": "Doe"},
        "emails": [{"value": "jane.doe@example.com", "type": "work", "primary": True}],
        "active": True,
    }


def test_make_user_disabled_identity_is_inactive():
    snapshot = IdentitySnapshot(user_id="u-2", username="off", enabled=False)
    assert make_user(snapshot, "off")["active"] is False


def test_make_user_without_snapshot_is_empty_and_inactive():
    payload = make_user(None, "ghost")
    assert payload["userName"] == "ghost"
    assert payload["name"] == {"givenName": "", "familyName": ""}
    assert payload["emails"][0]["value"] == ""
    assert payload["active"] is False


def test_make_user_patch_replaces_exactly_four_paths(jdoe):
    payload = make_user_patch(jdoe)
    assert payload["schemas"] == [PATCH_OP_SCHEMA]
    ops = payload["Operations"]
    assert [op["op"] for op in ops] == ["replace"] * 4
    assert {op["path"]: op["value"] for op in ops} == {
        "name.givenName": "Jane",
        "name.familyName": "Doe",
        "emails[primary eq true].value": "jane.doe@example.com",
        "active": True,
    }


def test_make_deactivate_patch():
    assert make_deactivate_patch() == {
        "schemas": [PATCH_OP_SCHEMA],
        "Operations": [{"op": "replace", "path": "active", "value": False}],
    }


def test_special_characters_survive_serialization():
    snapshot = IdentitySnapshot(user_id="u-3", first_name='Ann "Nan"', last_name="O\\Brien")
    wire = json.dumps(make_user(snapshot, 'quote"user'))
    assert '\\"Nan\\"' in wire
    assert "O\\\\Brien" in wire
    assert json.loads(wire)["name"]["familyName"] == "O\\Brien"
