"""Idempotent upsert / deactivate against one SCIM target.

The external directory is the source of truth for the userName -> id
mapping; nothing is cached locally.  Per invocation the engine issues at
most one CREATE and at most one corrective lookup + PATCH, so repeated
conflicts can never make it loop.
"""

from typing import Optional

from .http_client import SCIMClient
from .logging import get_logger
from .models import Action, IdentitySnapshot, Outcome
from .payload_factory import make_deactivate_patch, make_user, make_user_patch


class ReconciliationEngine:
    """Turns "this user changed" into find/create/patch calls on ``client``."""

    def __init__(self, client: SCIMClient, target_name: Optional[str] = None):
        self.client = client
        self.log = get_logger(__name__, subsystem="SCIM", target=target_name)

    def reconcile(self, action: Action, snapshot: Optional[IdentitySnapshot], user_name: str) -> Outcome:
        if action.is_delete:
            return self.deactivate(user_name)
        return self.upsert(snapshot, user_name)

    def upsert(self, snapshot: Optional[IdentitySnapshot], user_name: str) -> Outcome:
        if snapshot is None:
            self.log.warning("identity_missing_pushing_empty_profile", user_name=user_name)

        existing_id = self.client.find_id_by_user_name(user_name)
        if existing_id is None:
            if self.client.create_user(make_user(snapshot, user_name)):
                return Outcome.created()

            # Most likely a 409 from a concurrent creator: re-resolve once and patch
            existing_id = self.client.find_id_by_user_name(user_name)
            if existing_id is None:
                return Outcome.failed("create failed and user not found on re-lookup")

        if self.client.patch_user(existing_id, make_user_patch(snapshot)):
            return Outcome.patched()
        return Outcome.failed(f"patch of {existing_id} failed")

    def deactivate(self, user_name: str) -> Outcome:
        """Mark the external user inactive; never hard-deletes."""
        existing_id = self.client.find_id_by_user_name(user_name)
        if existing_id is None:
            return Outcome.noop("not found")
        if self.client.patch_user(existing_id, make_deactivate_patch()):
            return Outcome.deactivated()
        return Outcome.failed(f"deactivation of {existing_id} failed")
