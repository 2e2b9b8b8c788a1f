from __future__ import annotations

import json
from datetime import datetime
from enum import IntEnum
from typing import List, Optional

from .backup import backup_inventory
from .context import RunContext
from .executor import execute_actions
from .inventory import build_inventory
from .models import Location, LocationState, RunSummary
from .planner import build_plan
from .probe import probe_location
from .resolver import Chooser

RESULT_OK = "ok"
RESULT_NO_LOCATIONS = "no_locations"
RESULT_ERROR = "error"


class ExitCode(IntEnum):
    OK = 0
    TRANSFER_FAILED = 1
    NO_LOCATIONS = 2
    UNEXPECTED = 3


def exit_code_for(result: str) -> ExitCode:
    if result == RESULT_OK:
        return ExitCode.OK
    if result == RESULT_NO_LOCATIONS:
        return ExitCode.NO_LOCATIONS
    return ExitCode.UNEXPECTED


def run_merge(addresses: List[str], ctx: RunContext, chooser: Optional[Chooser] = None) -> RunSummary:
    """Probe, scan, back up, plan and execute one merge across ``addresses``.

    Unreachable locations are dropped for this run. The summary's ``result`` is
    ``no_locations`` only when none is reachable; failed copies still leave the
    run ``ok``.
    """
    summary = RunSummary(
        dry_run=ctx.dry_run,
        policy=ctx.policy,
        locations_total=len(addresses),
        started_at=ctx.started_at.isoformat(timespec="seconds"),
    )
    ctx.log(
        "INFO",
        "runner",
        "run_started",
        json.dumps({"locations": addresses, "policy": ctx.policy, "dry_run": ctx.dry_run}),
    )

    locations: List[Location] = []
    for address in addresses:
        location = Location(address)
        if probe_location(location, ctx) == LocationState.REACHABLE:
            locations.append(location)
        else:
            summary.unreachable.append(address)
    summary.locations_reachable = len(locations)

    if not locations:
        summary.result = RESULT_NO_LOCATIONS
        summary.finished_at = datetime.now().isoformat(timespec="seconds")
        ctx.log("ERROR", "runner", "no_locations_accessible", json.dumps({"locations": addresses}))
        return summary
    if len(locations) == 1:
        ctx.log("INFO", "runner", "single_location_backup_only", json.dumps({"location": locations[0].address}))

    inventories = [build_inventory(location, idx, ctx) for idx, location in enumerate(locations)]
    summary.files_seen = sum(len(inv) for inv in inventories)

    for inv, location in zip(inventories, locations):
        backup = backup_inventory(inv, location, ctx.archive_root, ctx)
        if backup is None:
            summary.backup_failures += 1
            continue
        summary.backup_failures += backup.failed
        if inv:
            summary.backups.append(str(backup.path))

    plan = build_plan(inventories, locations, ctx, chooser)
    summary.conflicts = plan.conflicts
    summary.skipped_paths = len(plan.skipped)
    summary.planned = len(plan.actions)

    result = execute_actions(plan.actions, ctx)
    summary.succeeded = result.succeeded
    summary.failed = result.failed
    summary.finished_at = datetime.now().isoformat(timespec="seconds")

    ctx.log("INFO", "runner", "run_finished", json.dumps(summary.to_dict()))
    return summary
