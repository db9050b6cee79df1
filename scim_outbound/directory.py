"""The host identity provider, as seen by the router.

The host implements ``IdentityDirectory`` on top of its own user store and
configuration surface.  ``InMemoryDirectory`` backs the CLI and the tests.
"""

from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

from .models import IdentitySnapshot, SyncTarget


def snapshot_from_dict(data: Mapping[str, Any]) -> IdentitySnapshot:
    """Build a snapshot from a JSON user record.

    ``attributes`` values may be strings or lists of strings.
    """
    user_id = data.get("user_id") or data.get("id")
    if not user_id:
        raise ValueError("user record needs 'user_id'")

    attributes: Dict[str, List[str]] = {}
    for name, value in (data.get("attributes") or {}).items():
        attributes[name] = [str(v) for v in value] if isinstance(value, list) else [str(value)]

    return IdentitySnapshot(
        user_id=str(user_id),
        username=data.get("username") or "",
        first_name=data.get("first_name") or "",
        last_name=data.get("last_name") or "",
        email=data.get("email") or "",
        enabled=bool(data.get("enabled", True)),
        attributes=attributes,
        groups=tuple(data.get("groups") or ()),
    )


class IdentityDirectory(Protocol):
    def get_user(self, tenant_id: str, user_id: str) -> Optional[IdentitySnapshot]:
        """Current state of the user, or None if it no longer exists."""

    def get_group_name(self, tenant_id: str, group_id: str) -> Optional[str]:
        """Display name of a group, or None if unknown."""

    def get_targets(self, tenant_id: str) -> Sequence[SyncTarget]:
        """SyncTargets configured for the tenant (possibly none)."""


class InMemoryDirectory:
    """Dict-backed ``IdentityDirectory``."""

    def __init__(
        self,
        targets: Optional[Dict[str, List[SyncTarget]]] = None,
        users: Optional[Dict[Tuple[str, str], IdentitySnapshot]] = None,
        groups: Optional[Dict[Tuple[str, str], str]] = None,
    ):
        self.targets = dict(targets or {})
        self.users = dict(users or {})
        self.groups = dict(groups or {})

    def add_user(self, tenant_id: str, snapshot: IdentitySnapshot) -> None:
        self.users[(tenant_id, snapshot.user_id)] = snapshot

    def remove_user(self, tenant_id: str, user_id: str) -> None:
        self.users.pop((tenant_id, user_id), None)

    def add_group(self, tenant_id: str, group_id: str, name: str) -> None:
        self.groups[(tenant_id, group_id)] = name

    def get_user(self, tenant_id: str, user_id: str) -> Optional[IdentitySnapshot]:
        return self.users.get((tenant_id, user_id))

    def get_group_name(self, tenant_id: str, group_id: str) -> Optional[str]:
        return self.groups.get((tenant_id, group_id))

    def get_targets(self, tenant_id: str) -> Sequence[SyncTarget]:
        return self.targets.get(tenant_id, [])
