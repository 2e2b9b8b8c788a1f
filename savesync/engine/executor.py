from __future__ import annotations

import json
import shutil
from typing import List

from .context import RunContext
from .models import ExecutionResult, Location, SyncAction
from .probe import host_reachable


def execute_actions(actions: List[SyncAction], ctx: RunContext) -> ExecutionResult:
    result = ExecutionResult()
    if not actions:
        ctx.log("INFO", "executor", "already_in_sync", json.dumps({"actions": 0}))
        return result

    for action in actions:
        detail = {
            "rel_path": action.rel_path,
            "source": str(action.source),
            "target": str(action.target),
            "reason": action.reason,
        }
        if ctx.dry_run:
            ctx.log("INFO", "executor", "dry_run_would_copy", json.dumps(detail))
            result.succeeded += 1
            continue

        host = Location(str(action.target)).host
        if host and not host_reachable(host, ctx):
            result.failed += 1
            ctx.log("WARN", "executor", "target_host_unreachable", json.dumps({**detail, "host": host}))
            continue

        if action.target.is_dir():
            result.failed += 1
            ctx.log("ERROR", "executor", "target_is_directory", json.dumps(detail))
            continue

        try:
            action.target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(action.source, action.target)
            result.succeeded += 1
            ctx.log("INFO", "executor", "copied", json.dumps(detail))
        except Exception as e:
            result.failed += 1
            ctx.log("ERROR", "executor", "copy_failed", json.dumps({**detail, "error": str(e)}))

    ctx.log("INFO", "executor", "execution_complete", json.dumps({"succeeded": result.succeeded, "failed": result.failed}))
    return result
