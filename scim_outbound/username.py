"""Derive the external SCIM ``userName`` for an identity."""

from typing import Optional

from .models import IdentitySnapshot, SyncTarget, UserNameStrategy


def _non_blank(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return value


def resolve_user_name(
    target: SyncTarget,
    snapshot: Optional[IdentitySnapshot],
    fallback: Optional[str] = None,
) -> Optional[str]:
    """Return the userName this target knows the identity by, or None if unresolvable.

    When the snapshot is missing (the identity is already gone upstream) only
    the ``username`` strategy can still answer, using ``fallback``.
    """
    strategy = target.user_name_strategy

    if snapshot is None:
        if strategy is UserNameStrategy.USERNAME:
            return _non_blank(fallback)
        return None

    if strategy is UserNameStrategy.EMAIL:
        return _non_blank(snapshot.email)

    if strategy is UserNameStrategy.ATTRIBUTE:
        attribute = _non_blank(target.user_name_attribute)
        if attribute is None:
            return None
        return _non_blank(snapshot.first_attribute(attribute))

    return _non_blank(snapshot.username)
