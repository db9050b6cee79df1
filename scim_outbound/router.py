"""Entry point for host notifications.

``EventRouter`` classifies a notification, gates it through the debouncer,
and fans the resulting ``IdentityEvent`` out to every SyncTarget of the
tenant.  Each target is handled in isolation: a misconfigured target, an
unresolvable userName or a transport failure is logged and recorded as that
target's ``Outcome``, and never stops the remaining targets or later
notifications.

The router is safe to call from several host worker threads at once; the
debouncer is the only shared mutable state.
"""

from typing import Callable, Dict, Optional

from .debounce import Debouncer
from .directory import IdentityDirectory
from .events import (
    AdminNotification,
    Classification,
    UserNotification,
    classify_admin_event,
    classify_user_event,
    describe,
    is_membership_notification,
)
from .http_client import SCIMClient
from .logging import get_logger
from .models import Action, IdentityEvent, MembershipChange, Outcome, OutcomeKind, SyncTarget
from .reconcile import ReconciliationEngine
from .username import resolve_user_name


class EventRouter:
    """Dispatches lifecycle notifications to SCIM targets.

    Args:
        directory:      Host view of users, groups and configured targets.
        debouncer:      Duplicate suppression; a fresh ``Debouncer`` by default.
        client_factory: Builds the transport for a target (injectable for tests).
    """

    def __init__(
        self,
        directory: IdentityDirectory,
        debouncer=None,
        client_factory: Callable[[SyncTarget], SCIMClient] = SCIMClient.for_target,
    ):
        self.directory = directory
        self.debouncer = debouncer if debouncer is not None else Debouncer()
        self.client_factory = client_factory
        self.log = get_logger(__name__, subsystem="SCIM")

    # -- Inbound -------------------------------------------------------------

    def handle_user_event(self, notification: UserNotification) -> Dict[str, Outcome]:
        try:
            classification = classify_user_event(notification)
            if classification is None:
                return {}
            return self._route(notification.tenant_id, classification)
        except Exception as exc:
            self.log.error("notification_failed", error=str(exc), **describe(notification))
            return {}

    def handle_admin_event(self, notification: AdminNotification) -> Dict[str, Outcome]:
        try:
            classification = classify_admin_event(notification)
            if classification is None:
                if is_membership_notification(notification) and \
                        (notification.operation or "").upper() in ("CREATE", "DELETE"):
                    self.log.info("membership_path_unparseable", subsystem="membership",
                                  **describe(notification))
                return {}
            return self._route(notification.tenant_id, classification)
        except Exception as exc:
            self.log.error("notification_failed", error=str(exc), **describe(notification))
            return {}

    def _route(self, tenant_id: str, classification: Classification) -> Dict[str, Outcome]:
        membership = None
        if classification.is_membership:
            group_name = self.directory.get_group_name(tenant_id, classification.group_id)
            if not group_name:
                self.log.info("membership_group_not_found", subsystem="membership",
                              tenant=tenant_id, group_id=classification.group_id)
                return {}
            membership = MembershipChange(
                classification.group_id, group_name,
                added=classification.action is Action.CREATE,
            )

        event = IdentityEvent(
            tenant_id=tenant_id,
            action=classification.action,
            user_id=classification.user_id,
            snapshot=self.directory.get_user(tenant_id, classification.user_id),
            membership=membership,
            fallback_user_name=classification.fallback_user_name,
        )
        return self.dispatch(event)

    # -- Fan-out -------------------------------------------------------------

    def dispatch(self, event: IdentityEvent) -> Dict[str, Outcome]:
        """Send one event to every eligible target; returns outcomes by target name.

        Membership events only reach targets whose filter group is the
        event's group.  An empty result means the event was debounced or no
        target applied.
        """
        if not self.debouncer.should_proceed(event.debounce_key):
            self.log.info("debounced", tenant=event.tenant_id, action=event.action.value,
                          user_id=event.user_id)
            return {}

        outcomes: Dict[str, Outcome] = {}
        for target in self.directory.get_targets(event.tenant_id):
            if event.membership is not None and \
                    (not target.has_filter_group or target.filter_group != event.membership.group_name):
                continue
            outcomes[target.name] = self._handle_target(target, event)
        return outcomes

    def _handle_target(self, target: SyncTarget, event: IdentityEvent) -> Outcome:
        log = self.log.bind(target=target.name, action=event.action.value)
        if event.membership is not None:
            log = log.bind(subsystem="membership", group=event.membership.group_name,
                           operation=event.membership.operation)

        user_name: Optional[str] = None
        try:
            if not target.is_complete:
                log.error("target_configuration_incomplete", detail="baseUrl/token missing")
                return Outcome.failed("configuration")

            user_name = resolve_user_name(target, event.snapshot, event.fallback_user_name)
            if user_name is None:
                log.error("user_name_unresolvable", user_id=event.user_id,
                          strategy=target.user_name_strategy.value)
                return Outcome.failed("unresolvable userName")

            if event.membership is None and not event.action.is_delete and target.has_filter_group:
                if event.snapshot is None:
                    log.info("skipped_identity_not_found", user_name=user_name)
                    return Outcome.noop("identity not found for group filter")
                if not event.snapshot.in_group(target.filter_group):
                    log.info("skipped_not_in_filter_group", user_name=user_name,
                             filter_group=target.filter_group)
                    return Outcome.noop("not in filter group")

            engine = ReconciliationEngine(self.client_factory(target), target_name=target.name)
            outcome = engine.reconcile(event.action, event.snapshot, user_name)
        except Exception as exc:
            log.error("dispatch_failed", user_name=user_name, error=str(exc))
            return Outcome.failed(str(exc) or exc.__class__.__name__)

        if outcome.kind is OutcomeKind.FAILED:
            log.error("reconciled", tenant=event.tenant_id, user_name=user_name, outcome=str(outcome))
        else:
            log.info("reconciled", tenant=event.tenant_id, user_name=user_name, outcome=str(outcome))
        return outcome
