"""Data model shared by the router, the reconciliation engine and the CLI.

Actions and outcomes are closed enumerations; events and snapshots are frozen
dataclasses so a single notification can fan out to several targets without
any of them mutating what the others see.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


class ConfigurationError(ValueError):
    """Raised when a SyncTarget definition is incomplete or inconsistent."""


class Action(Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"

    @property
    def is_delete(self) -> bool:
        return self is Action.DELETE


class OutcomeKind(Enum):
    CREATED = "created"
    PATCHED = "patched"
    DEACTIVATED = "deactivated"
    NOOP = "noop"
    FAILED = "failed"


@dataclass(frozen=True)
class Outcome:
    """Result of one reconciliation against one target."""

    kind: OutcomeKind
    reason: str = ""

    @classmethod
    def created(cls) -> "Outcome":
        return cls(OutcomeKind.CREATED)

    @classmethod
    def patched(cls) -> "Outcome":
        return cls(OutcomeKind.PATCHED)

    @classmethod
    def deactivated(cls) -> "Outcome":
        return cls(OutcomeKind.DEACTIVATED)

    @classmethod
    def noop(cls, reason: str = "") -> "Outcome":
        return cls(OutcomeKind.NOOP, reason)

    @classmethod
    def failed(cls, reason: str) -> "Outcome":
        return cls(OutcomeKind.FAILED, reason)

    @property
    def ok(self) -> bool:
        return self.kind is not OutcomeKind.FAILED

    def __str__(self):
        return f"{self.kind.value} ({self.reason})" if self.reason else self.kind.value


class UserNameStrategy(Enum):
    """How the external ``userName`` is derived from an identity."""

    USERNAME = "username"
    EMAIL = "email"
    ATTRIBUTE = "attribute"


@dataclass(frozen=True)
class IdentitySnapshot:
    """The identity provider's view of a user at dispatch time."""

    user_id: str
    username: str = ""
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    enabled: bool = True
    attributes: Dict[str, List[str]] = field(default_factory=dict)
    groups: Tuple[str, ...] = ()

    def first_attribute(self, name: str) -> Optional[str]:
        values = self.attributes.get(name) or []
        return values[0] if values else None

    def in_group(self, group_name: str) -> bool:
        return group_name in self.groups


@dataclass(frozen=True)
class MembershipChange:
    group_id: str
    group_name: str
    added: bool

    @property
    def operation(self) -> str:
        return "add" if self.added else "remove"


@dataclass(frozen=True)
class IdentityEvent:
    """A normalized lifecycle fact, ready to be fanned out to SyncTargets.

    ``fallback_user_name`` carries whatever username the raw notification
    exposed; it is only used when the identity no longer exists upstream.
    """

    tenant_id: str
    action: Action
    user_id: str
    snapshot: Optional[IdentitySnapshot] = None
    membership: Optional[MembershipChange] = None
    fallback_user_name: Optional[str] = None

    @property
    def debounce_key(self) -> Tuple[str, ...]:
        if self.membership is not None:
            return (self.tenant_id, "membership", self.user_id,
                    self.membership.group_id, self.membership.operation)
        return (self.tenant_id, self.action.value, self.user_id)


@dataclass(frozen=True)
class SyncTarget:
    """One external SCIM directory and its provisioning policy.

    Instances are produced by ``scim_outbound.config`` and never mutated by
    the core.  ``token`` is excluded from ``repr`` so it cannot leak into logs.
    """

    name: str
    base_url: str
    token: str = field(repr=False)
    filter_group: Optional[str] = None
    user_name_strategy: UserNameStrategy = UserNameStrategy.USERNAME
    user_name_attribute: Optional[str] = None
    timeout: float = 8.0
    max_retries: int = 3
    tls_no_verify: bool = False
    ca_bundle: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return bool(self.base_url and self.base_url.strip()) and bool(self.token and self.token.strip())

    @property
    def has_filter_group(self) -> bool:
        return bool(self.filter_group and self.filter_group.strip())
