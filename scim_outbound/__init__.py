"""scim-outbound: push identity lifecycle changes to external SCIM 2.0 directories.

Turns user and group-membership notifications from an identity provider into
idempotent find-or-create-or-patch calls against one or more SCIM targets per
tenant, with debouncing, group-filter gating and retry/backoff on the wire.
"""

__version__ = "0.3.1"
