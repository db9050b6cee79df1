"""CLI interface for scim-outbound using Click.

Two operator commands sit on top of the sync engine:

  scim-outbound check targets.json [--probe]
  scim-outbound push targets.json user.json --tenant acme --action update
"""

import json
import sys
from typing import Dict, List, Optional

import click
from dotenv import load_dotenv

from . import __version__
from .config import LOG_JSON_ENV, LOG_LEVEL_ENV, load_targets
from .debounce import NullDebouncer
from .directory import InMemoryDirectory, snapshot_from_dict
from .http_client import SCIMClient
from .logging import configure_logging
from .models import Action, ConfigurationError, IdentityEvent, SyncTarget
from .router import EventRouter


def _colorize(text: str, color: str) -> str:
    """Colorize text using ANSI codes."""
    colors = {
        "red": "\033[91m",
        "green": "\033[92m",
        "yellow": "\033[93m",
        "reset": "\033[0m",
        "bold": "\033[1m",
    }
    if not sys.stdout.isatty():
        return text  # No colors if not a TTY
    return f"{colors.get(color, '')}{text}{colors['reset']}"


def _print_error(message: str):
    click.echo(_colorize(f"❌ {message}", "red"))


def _print_success(message: str):
    click.echo(_colorize(f"✅ {message}", "green"))


def _print_notice(message: str):
    click.echo(_colorize(f"➖ {message}", "yellow"))


def _load(config_file: str, as_json: bool) -> Optional[Dict[str, List[SyncTarget]]]:
    try:
        return load_targets(config_file)
    except ConfigurationError as e:
        if as_json:
            click.echo(json.dumps({"valid": False, "error": str(e)}, indent=2))
        else:
            _print_error(f"Invalid configuration: {e}")
        return None


@click.group()
@click.version_option(version=__version__)
@click.option("--log-level", envvar=LOG_LEVEL_ENV, default="INFO", show_default=True,
              help="Minimum log level")
@click.option("--log-json", envvar=LOG_JSON_ENV, is_flag=True, help="Emit JSON log lines")
def cli(log_level: str, log_json: bool):
    """Push identity lifecycle changes to SCIM 2.0 targets (RFC 7643/7644)."""
    configure_logging(json_format=log_json, log_level=log_level)


@cli.command()
@click.argument("config_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--probe", is_flag=True, help="GET /ServiceProviderConfig on every target")
@click.option("--json", "as_json", is_flag=True, help="Machine-readable output")
def check(config_file: str, probe: bool, as_json: bool):
    """Validate a targets file and optionally probe each target."""
    tenants = _load(config_file, as_json)
    if tenants is None:
        sys.exit(1)

    report = []
    failed = False
    for tenant_id, targets in tenants.items():
        for target in targets:
            entry = {"tenant": tenant_id, "target": target.name, "base_url": target.base_url,
                     "valid": True}
            if probe:
                entry["reachable"] = SCIMClient.for_target(target).probe()
                failed = failed or not entry["reachable"]
            report.append(entry)

    if as_json:
        click.echo(json.dumps({"valid": True, "targets": report}, indent=2))
    else:
        if not report:
            _print_notice("No targets configured")
        for entry in report:
            label = f"{entry['tenant']}/{entry['target']} {entry['base_url']}"
            if entry.get("reachable") is False:
                _print_error(f"{label} unreachable")
            elif entry.get("reachable"):
                _print_success(f"{label} reachable")
            else:
                _print_success(f"{label} valid")
    sys.exit(1 if failed else 0)


@cli.command()
@click.argument("config_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("user_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--tenant", required=True, help="Tenant whose targets receive the change")
@click.option("--action", "action_name", required=True,
              type=click.Choice(["create", "update", "delete"], case_sensitive=False))
@click.option("--json", "as_json", is_flag=True, help="Machine-readable output")
def push(config_file: str, user_file: str, tenant: str, action_name: str, as_json: bool):
    """Reconcile one user record against every target of a tenant.

    USER_FILE is a JSON object with user_id, username, first_name, last_name,
    email, enabled, attributes and groups.  No debouncing is applied.
    """
    tenants = _load(config_file, as_json)
    if tenants is None:
        sys.exit(1)

    try:
        with open(user_file, "r") as f:
            snapshot = snapshot_from_dict(json.load(f))
    except (json.JSONDecodeError, ValueError, AttributeError) as e:
        _print_error(f"Invalid user record: {e}")
        sys.exit(1)

    directory = InMemoryDirectory(targets=tenants)
    directory.add_user(tenant, snapshot)
    router = EventRouter(directory, debouncer=NullDebouncer())
    outcomes = router.dispatch(IdentityEvent(
        tenant_id=tenant,
        action=Action(action_name.upper()),
        user_id=snapshot.user_id,
        snapshot=snapshot,
        fallback_user_name=snapshot.username or None,
    ))

    if as_json:
        click.echo(json.dumps({
            "tenant": tenant,
            "action": action_name.upper(),
            "outcomes": {name: {"outcome": o.kind.value, "reason": o.reason}
                         for name, o in outcomes.items()},
        }, indent=2))
    else:
        if not outcomes:
            _print_notice(f"No targets configured for tenant {tenant}")
        for name, outcome in outcomes.items():
            if outcome.ok:
                _print_success(f"{name}: {outcome}")
            else:
                _print_error(f"{name}: {outcome}")

    sys.exit(0 if all(o.ok for o in outcomes.values()) else 1)


def main():
    load_dotenv()
    cli()


if __name__ == "__main__":
    main()
