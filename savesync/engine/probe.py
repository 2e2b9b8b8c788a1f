from __future__ import annotations

import json
import os
import socket

from .context import RunContext
from .models import Location, LocationState

MAX_PROBE_TIMEOUT_SEC = 2.0


def host_reachable(host: str, ctx: RunContext) -> bool:
    """Short TCP connect to the file-sharing port. Only a hint: some networks block it."""
    timeout = min(float(ctx.probe_timeout_sec), MAX_PROBE_TIMEOUT_SEC)
    try:
        with socket.create_connection((host, int(ctx.probe_port)), timeout=timeout):
            return True
    except OSError as e:
        ctx.log("DEBUG", "probe", "tcp_probe_failed", json.dumps({"host": host, "port": ctx.probe_port, "error": str(e)}))
        return False


def probe_location(location: Location, ctx: RunContext) -> LocationState:
    host = location.host
    if host and not host_reachable(host, ctx):
        ctx.log(
            "WARN",
            "probe",
            "host_probe_negative",
            json.dumps({"location": location.address, "host": host, "note": "continuing with directory check"}),
        )

    root = location.root
    missing = False
    try:
        os.listdir(root)
        location.exists = True
        location.state = LocationState.REACHABLE
        ctx.log("DEBUG", "probe", "location_listed", json.dumps({"location": location.address}))
        return location.state
    except FileNotFoundError:
        missing = True
    except OSError as e:
        ctx.log("WARN", "probe", "location_list_failed", json.dumps({"location": location.address, "error": str(e)}))

    if ctx.dry_run and missing:
        ctx.log("INFO", "probe", "dry_run_would_create", json.dumps({"location": location.address}))
        location.exists = False
        location.state = LocationState.REACHABLE
        return location.state

    try:
        root.mkdir(parents=True, exist_ok=True)
        location.exists = True
        location.state = LocationState.REACHABLE
        ctx.log("INFO", "probe", "location_created", json.dumps({"location": location.address}))
    except OSError as e:
        location.state = LocationState.UNREACHABLE
        ctx.log("ERROR", "probe", "location_unreachable", json.dumps({"location": location.address, "error": str(e)}))
    return location.state
