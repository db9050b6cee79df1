"""Raw host notifications and their classification into actions.

Everything here is pure: a notification goes in, a ``Classification`` (or
None for "not interesting") comes out.  Looking the subject up in the
identity directory is the router's job.

User notifications carry an event kind such as ``REGISTER`` or
``UPDATE_PROFILE``.  Admin notifications carry an operation (``CREATE``,
``UPDATE``, ``DELETE``), a resource type (``USER``, ``GROUP_MEMBERSHIP``)
and a resource path, e.g. ``users/{id}`` or ``users/{id}/groups/{group}``.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from .models import Action

# User event kinds
REGISTER = "REGISTER"
UPDATE_PROFILE = "UPDATE_PROFILE"
UPDATE_EMAIL = "UPDATE_EMAIL"
UPDATE_CREDENTIAL = "UPDATE_CREDENTIAL"
UPDATE_PASSWORD = "UPDATE_PASSWORD"
DELETE_ACCOUNT = "DELETE_ACCOUNT"

# Admin resource types
RESOURCE_USER = "USER"
RESOURCE_GROUP_MEMBERSHIP = "GROUP_MEMBERSHIP"

_USER_EVENT_ACTIONS = {
    REGISTER: Action.CREATE,
    UPDATE_PROFILE: Action.UPDATE,
    UPDATE_EMAIL: Action.UPDATE,
    UPDATE_PASSWORD: Action.UPDATE,
    DELETE_ACCOUNT: Action.DELETE,
}

_ADMIN_OPERATIONS = {
    "CREATE": Action.CREATE,
    "UPDATE": Action.UPDATE,
    "DELETE": Action.DELETE,
}


@dataclass(frozen=True)
class UserNotification:
    """A self-service lifecycle event emitted by the identity provider."""

    tenant_id: str
    kind: str
    user_id: Optional[str]
    details: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class AdminNotification:
    """An administrative CRUD event; ``representation`` is the optional resource body."""

    tenant_id: str
    operation: str
    resource_type: str
    resource_path: Optional[str]
    representation: Optional[Mapping[str, Any]] = None


@dataclass(frozen=True)
class Classification:
    action: Action
    user_id: str
    group_id: Optional[str] = None
    fallback_user_name: Optional[str] = None

    @property
    def is_membership(self) -> bool:
        return self.group_id is not None


def classify_user_event(notification: UserNotification) -> Optional[Classification]:
    """Map a user notification to an action; None for kinds that are not synced.

    Credential updates only count when the credential is a password.
    """
    if not notification.user_id:
        return None
    kind = (notification.kind or "").upper()
    details = notification.details or {}

    if kind == UPDATE_CREDENTIAL:
        if str(details.get("credential_type", "")).lower() != "password":
            return None
        action = Action.UPDATE
    else:
        action = _USER_EVENT_ACTIONS.get(kind)
        if action is None:
            return None

    return Classification(action, notification.user_id,
                          fallback_user_name=details.get("username") or None)


def classify_admin_event(notification: AdminNotification) -> Optional[Classification]:
    """Map an admin notification to an action.

    Membership additions provision (CREATE), removals deactivate (DELETE);
    other membership operations and resource types are ignored.  A membership
    path that cannot be parsed also yields None; the router logs that case.
    """
    action = _ADMIN_OPERATIONS.get((notification.operation or "").upper())
    if action is None:
        return None
    resource_type = (notification.resource_type or "").upper()
    fallback = _representation_user_name(notification.representation)

    if resource_type == RESOURCE_GROUP_MEMBERSHIP:
        if action is Action.UPDATE:
            return None
        parsed = parse_membership_path(notification.resource_path)
        if parsed is None:
            return None
        user_id, group_id = parsed
        return Classification(action, user_id, group_id=group_id, fallback_user_name=fallback)

    if resource_type == RESOURCE_USER:
        user_id = extract_user_id(notification.resource_path)
        if user_id is None:
            return None
        return Classification(action, user_id, fallback_user_name=fallback)

    return None


def _segments(path: Optional[str]):
    if not path:
        return []
    return [p for p in path.split("/") if p]


def _segment_after(parts, marker: str) -> Optional[str]:
    for i in range(len(parts) - 1):
        if parts[i] == marker:
            return parts[i + 1]
    return None


def extract_user_id(resource_path: Optional[str]) -> Optional[str]:
    """``users/{id}`` (with or without a leading slash or trailing segments) -> id."""
    return _segment_after(_segments(resource_path), "users")


def parse_membership_path(resource_path: Optional[str]) -> Optional[Tuple[str, str]]:
    """Recover ``(user_id, group_id)`` from a membership resource path.

    Accepts ``users/{user}/groups/{group}`` and ``groups/{group}/members/{user}``.
    """
    parts = _segments(resource_path)
    user_id = _segment_after(parts, "users") or _segment_after(parts, "members")
    group_id = _segment_after(parts, "groups")
    if not user_id or not group_id:
        return None
    return user_id, group_id


def _representation_user_name(representation: Optional[Mapping[str, Any]]) -> Optional[str]:
    if not isinstance(representation, Mapping):
        return None
    value = representation.get("username")
    return value if isinstance(value, str) and value.strip() else None


def is_membership_notification(notification: AdminNotification) -> bool:
    return (notification.resource_type or "").upper() == RESOURCE_GROUP_MEMBERSHIP


def describe(notification: Any) -> Dict[str, Any]:
    """Log-friendly fields for a raw notification."""
    if isinstance(notification, AdminNotification):
        return {
            "tenant": notification.tenant_id,
            "operation": notification.operation,
            "resource_type": notification.resource_type,
            "resource_path": notification.resource_path,
        }
    return {
        "tenant": notification.tenant_id,
        "kind": notification.kind,
        "user_id": notification.user_id,
    }
