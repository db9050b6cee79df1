"""Builds SCIM User and PatchOp payloads from an identity snapshot.

Payloads are plain dicts; the JSON encoder used by the transport takes care
of escaping quotes, backslashes and control characters in string values.
A missing snapshot yields an empty profile with ``active`` false: the
identity no longer exists upstream, so nothing should be pushed as enabled.
"""

from typing import Any, Dict, List, Optional

from .models import IdentitySnapshot

USER_SCHEMA = "urn:ietf:params:scim:schemas:core:2.0:User"
PATCH_OP_SCHEMA = "urn:ietf:params:scim:api:messages:2.0:PatchOp"


def _profile(snapshot: Optional[IdentitySnapshot]) -> Dict[str, Any]:
    if snapshot is None:
        return {"given": "", "family": "", "email": "", "active": False}
    return {
        "given": snapshot.first_name or "",
        "family": snapshot.last_name or "",
        "email": snapshot.email or "",
        "active": bool(snapshot.enabled),
    }


def make_user(snapshot: Optional[IdentitySnapshot], user_name: str) -> Dict[str, Any]:
    """POST /Users body for ``user_name`` (already resolved by the target's strategy)."""
    p = _profile(snapshot)
    return {
        "schemas": [USER_SCHEMA],
        "userName": user_name or "",
        "name": {
            "givenName": p["given"],
            "familyName": p["family"],
        },
        "emails": [
            {
                "value": p["email"],
                "type": "work",
                "primary": True,
            }
        ],
        "active": p["active"],
    }


def make_patch(operations: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Generate a SCIM PatchOp payload wrapping the given operations list."""
    return {
        "schemas": [PATCH_OP_SCHEMA],
        "Operations": operations,
    }


def replace(path: str, value: Any) -> Dict[str, Any]:
    return {"op": "replace", "path": path, "value": value}


def make_user_patch(snapshot: Optional[IdentitySnapshot]) -> Dict[str, Any]:
    """PatchOp replacing given name, family name, primary email and active flag."""
    p = _profile(snapshot)
    return make_patch([
        replace("name.givenName", p["given"]),
        replace("name.familyName", p["family"]),
        replace("emails[primary eq true].value", p["email"]),
        replace("active", p["active"]),
    ])


def make_deactivate_patch() -> Dict[str, Any]:
    """PatchOp that only sets ``active`` to false."""
    return make_patch([replace("active", False)])
