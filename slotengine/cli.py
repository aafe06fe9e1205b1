"""
slotengine CLI: developer tool for inspecting the engine on snapshots.

Usage:
    slotengine slots SNAPSHOT.yaml [--debug] [--apply-timezone]
    slotengine transition CURRENT TARGET
    slotengine expiry --state pending --created-at 2026-02-14T10:00:00Z [--now ...]
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import click
import yaml
from pydantic import ValidationError

from slotengine.config import get_settings


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
def cli(verbose: bool):
    """slotengine: availability and booking lifecycle engine."""
    level = logging.DEBUG if verbose else get_settings().log_level.upper()
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


@cli.command()
@click.argument("snapshot_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--debug", is_flag=True, help="Also print excluded ranges with reasons")
@click.option("--apply-timezone", is_flag=True, help="Expand recurring windows in the snapshot timezone")
def slots(snapshot_path: Path, debug: bool, apply_timezone: bool):
    """Compute sellable slots from a YAML or JSON snapshot."""
    from slotengine.core.availability import compute_sellable_slots_from_input
    from slotengine.core.schemas import AvailabilitySnapshot

    try:
        snapshot = AvailabilitySnapshot(**_load_snapshot(snapshot_path))
    except ValidationError as e:
        # Unquoted YAML times such as 17:00 load as base-60 integers.
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise click.BadParameter(
            f"invalid snapshot ({problems}). Quote HH:MM times in YAML.", param_hint="SNAPSHOT_PATH"
        ) from e
    apply_timezone = apply_timezone or get_settings().apply_provider_timezone

    result = compute_sellable_slots_from_input(
        snapshot.window,
        snapshot.timezone,
        snapshot.recurring,
        snapshot.overrides,
        snapshot.bookings,
        snapshot.external_busy,
        apply_timezone=apply_timezone,
        include_exclusion_reasons=debug,
    )
    payload: dict[str, Any] = {"slots": [s.model_dump(mode="json") for s in result.slots]}
    if debug:
        payload["excluded_ranges"] = [e.model_dump(mode="json") for e in result.excluded_ranges]
    click.echo(json.dumps(payload, indent=2))


@cli.command("transition")
@click.argument("current")
@click.argument("target")
def transition_cmd(current: str, target: str):
    """Validate a booking state transition."""
    from slotengine.core.booking_state import transition
    from slotengine.core.errors import InvalidTransition

    try:
        new_state = transition(current, target)
    except InvalidTransition as e:
        click.echo(f"{e.code}: {e}", err=True)
        raise SystemExit(1)
    click.echo(new_state.value)


@cli.command()
@click.option("--state", required=True, help="Current booking state")
@click.option("--created-at", required=True, help="Booking creation timestamp (ISO-8601)")
@click.option("--now", default=None, help="Evaluation time (ISO-8601), defaults to current time")
def expiry(state: str, created_at: str, now: str | None):
    """Show whether a booking would be auto-declined on read."""
    from slotengine.core.expiry import check_expiry
    from slotengine.core.errors import MalformedTimestamp
    from slotengine.core.timeparse import parse_utc_strict

    try:
        now_dt = parse_utc_strict(now) if now else None
    except MalformedTimestamp as e:
        raise click.BadParameter(str(e), param_hint="--now") from e
    decision = check_expiry(state, created_at, now=now_dt, ttl=get_settings().pending_ttl)
    click.echo(
        json.dumps(
            {
                "changed": decision.changed,
                "state": getattr(decision.state, "value", decision.state),
                "audit_actor": decision.audit_actor,
            }
        )
    )


def _load_snapshot(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        if path.suffix == ".json":
            return json.load(f)
        return yaml.safe_load(f) or {}


if __name__ == "__main__":
    cli()
