"""SyncTarget loading/validation and runtime settings.

Targets are normally owned by the host's configuration surface.  This module
gives that surface (and the CLI) one place that turns a JSON document into
validated ``SyncTarget`` objects::

    {
      "tenants": {
        "acme": [
          {
            "name": "passbolt",
            "base_url": "https://passbolt.example.com/scim/v2",
            "token_env": "PASSBOLT_SCIM_TOKEN",
            "filter_group": "staff",
            "user_name_strategy": "email"
          }
        ]
      }
    }
"""

import json
import os
from typing import Any, Dict, List, Mapping, Optional

from .models import ConfigurationError, SyncTarget, UserNameStrategy

# ---------------------------------------------------------------------------
# Runtime settings (read at call time so a .env loaded by the CLI applies)
# ---------------------------------------------------------------------------
TIMEOUT_ENV = "SCIM_OUTBOUND_TIMEOUT"
MAX_RETRIES_ENV = "SCIM_OUTBOUND_MAX_RETRIES"
LOG_LEVEL_ENV = "SCIM_OUTBOUND_LOG_LEVEL"
LOG_JSON_ENV = "SCIM_OUTBOUND_LOG_JSON"


def default_timeout() -> float:
    return float(os.getenv(TIMEOUT_ENV, "8"))


def default_max_retries() -> int:
    return int(os.getenv(MAX_RETRIES_ENV, "3"))


def validate_target(target: SyncTarget) -> None:
    """Raise ``ConfigurationError`` unless the target is usable."""
    if not target.base_url or not target.base_url.strip():
        raise ConfigurationError(f"{target.name}: SCIM base URL is required")
    if not target.token or not target.token.strip():
        raise ConfigurationError(f"{target.name}: SCIM token is required")
    if not target.base_url.startswith(("http://", "https://")):
        raise ConfigurationError(f"{target.name}: SCIM base URL must start with http:// or https://")
    if target.user_name_strategy is UserNameStrategy.ATTRIBUTE:
        if not target.user_name_attribute or not target.user_name_attribute.strip():
            raise ConfigurationError(
                f"{target.name}: user_name_attribute is required when user_name_strategy=attribute"
            )
    if target.timeout <= 0:
        raise ConfigurationError(f"{target.name}: timeout must be positive")
    if target.max_retries < 0:
        raise ConfigurationError(f"{target.name}: max_retries must not be negative")


def parse_strategy(value: Optional[str]) -> UserNameStrategy:
    if value is None or value == "":
        return UserNameStrategy.USERNAME
    try:
        return UserNameStrategy(value.strip().lower())
    except ValueError:
        raise ConfigurationError(
            f"Invalid user_name_strategy {value!r}. Use 'username', 'email', or 'attribute'."
        ) from None


def _optional_str(entry: Mapping[str, Any], key: str) -> Optional[str]:
    value = entry.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _flag(entry: Mapping[str, Any], key: str, name: str) -> bool:
    value = entry.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ConfigurationError(f"{name}: {key} must be true or false, got {value!r}")
    return value


def target_from_dict(entry: Mapping[str, Any], default_name: str = "target") -> SyncTarget:
    """Build and validate a ``SyncTarget`` from one configuration entry."""
    if not isinstance(entry, Mapping):
        raise ConfigurationError(f"{default_name}: target entry must be an object")

    name = _optional_str(entry, "name") or default_name
    token = entry.get("token")
    token_env = _optional_str(entry, "token_env")
    if not token and token_env:
        token = os.getenv(token_env)
        if not token:
            raise ConfigurationError(f"{name}: environment variable {token_env} is not set")

    try:
        timeout = float(entry["timeout"]) if "timeout" in entry else default_timeout()
        max_retries = int(entry["max_retries"]) if "max_retries" in entry else default_max_retries()
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{name}: {exc}") from None

    target = SyncTarget(
        name=name,
        base_url=(entry.get("base_url") or "").strip().rstrip("/"),
        token=token or "",
        filter_group=_optional_str(entry, "filter_group"),
        user_name_strategy=parse_strategy(entry.get("user_name_strategy")),
        user_name_attribute=_optional_str(entry, "user_name_attribute"),
        timeout=timeout,
        max_retries=max_retries,
        tls_no_verify=_flag(entry, "tls_no_verify", name),
        ca_bundle=_optional_str(entry, "ca_bundle"),
    )
    validate_target(target)
    return target


def parse_targets(document: Mapping[str, Any]) -> Dict[str, List[SyncTarget]]:
    """Parse a whole configuration document into ``{tenant: [SyncTarget]}``.

    Target names must be unique within a tenant because they key the
    per-target outcomes returned by the router.
    """
    tenants = document.get("tenants") if isinstance(document, Mapping) else None
    if not isinstance(tenants, Mapping):
        raise ConfigurationError("Configuration must contain a 'tenants' object")

    result: Dict[str, List[SyncTarget]] = {}
    for tenant_id, entries in tenants.items():
        if not isinstance(entries, list):
            raise ConfigurationError(f"Tenant {tenant_id!r}: targets must be a list")
        targets = []
        seen = set()
        for index, entry in enumerate(entries):
            target = target_from_dict(entry, default_name=f"{tenant_id}-target-{index + 1}")
            if target.name in seen:
                raise ConfigurationError(f"Tenant {tenant_id!r}: duplicate target name {target.name!r}")
            seen.add(target.name)
            targets.append(target)
        result[str(tenant_id)] = targets
    return result


def load_targets(path: str) -> Dict[str, List[SyncTarget]]:
    """Read and validate a JSON configuration file."""
    try:
        with open(path, "r") as f:
            document = json.load(f)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Invalid JSON in {path}: {exc}") from None
    return parse_targets(document)
