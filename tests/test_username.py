"""Tests for userName resolution across the three strategies."""

import pytest

from scim_outbound.models import IdentitySnapshot, SyncTarget, UserNameStrategy
from scim_outbound.username import resolve_user_name


def _target(strategy, attribute=None):
    return SyncTarget(
        name="t",
        base_url="https://scim.example.com",
        token="x",
        user_name_strategy=strategy,
        user_name_attribute=attribute,
    )


def test_by_username(jdoe):
    assert resolve_user_name(_target(UserNameStrategy.USERNAME), jdoe, "fallback") == "jdoe"


def test_by_email():
    snapshot = IdentitySnapshot(user_id="u", username="ab", email="a@b.com")
    assert resolve_user_name(_target(UserNameStrategy.EMAIL), snapshot) == "a@b.com"


@pytest.mark.parametrize("email", ["", "   "])
def test_by_email_blank_is_unresolvable(email):
    snapshot = IdentitySnapshot(user_id="u", username="ab", email=email)
    assert resolve_user_name(_target(UserNameStrategy.EMAIL), snapshot) is None


def test_by_attribute():
    snapshot = IdentitySnapshot(user_id="u", attributes={"scim_username": ["x", "y"]})
    target = _target(UserNameStrategy.ATTRIBUTE, "scim_username")
    assert resolve_user_name(target, snapshot) == "x"


@pytest.mark.parametrize("attributes", [{}, {"scim_username": []}, {"scim_username": [" "]}])
def test_by_attribute_unset_is_unresolvable(attributes):
    snapshot = IdentitySnapshot(user_id="u", attributes=attributes)
    target = _target(UserNameStrategy.ATTRIBUTE, "scim_username")
    assert resolve_user_name(target, snapshot) is None


def test_by_attribute_without_attribute_name_is_unresolvable():
    snapshot = IdentitySnapshot(user_id="u", attributes={"scim_username": ["x"]})
    assert resolve_user_name(_target(UserNameStrategy.ATTRIBUTE), snapshot) is None


def test_missing_snapshot_uses_fallback_for_username_strategy():
    assert resolve_user_name(_target(UserNameStrategy.USERNAME), None, "jdoe") == "jdoe"
    assert resolve_user_name(_target(UserNameStrategy.USERNAME), None, None) is None


@pytest.mark.parametrize("strategy,attribute", [
    (UserNameStrategy.EMAIL, None),
    (UserNameStrategy.ATTRIBUTE, "scim_username"),
])
def test_missing_snapshot_other_strategies_unresolvable(strategy, attribute):
    assert resolve_user_name(_target(strategy, attribute), None, "jdoe") is None
