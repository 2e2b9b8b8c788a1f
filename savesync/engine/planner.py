from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .context import RunContext
from .models import (
    REASON_TARGET_MISSING,
    REASON_TARGET_STALE,
    FileRecord,
    Location,
    SyncAction,
    same_content,
)
from .resolver import Chooser, resolve_group


@dataclass
class MergePlan:
    actions: List[SyncAction] = field(default_factory=list)
    authoritative: Dict[str, FileRecord] = field(default_factory=dict)
    skipped: List[str] = field(default_factory=list)
    conflicts: int = 0


def build_plan(
    inventories: List[Dict[str, FileRecord]],
    locations: List[Location],
    ctx: RunContext,
    chooser: Optional[Chooser] = None,
) -> MergePlan:
    if len(inventories) != len(locations):
        raise ValueError("inventories and locations must have the same length")

    plan = MergePlan()
    all_paths = set()
    for inv in inventories:
        all_paths.update(inv.keys())

    for rel in sorted(all_paths):
        present = [inv[rel] for inv in inventories if rel in inv]
        if len(present) == 1:
            winner = present[0]
        else:
            winner = resolve_group(present, ctx, chooser)
            if winner is None:
                plan.skipped.append(rel)
                ctx.log("INFO", "planner", "path_skipped", json.dumps({"rel_path": rel}))
                continue
            if not all(same_content(winner, r) for r in present if r is not winner):
                plan.conflicts += 1

        plan.authoritative[rel] = winner

        for idx, (inv, location) in enumerate(zip(inventories, locations)):
            existing = inv.get(rel)
            if existing is None:
                reason = REASON_TARGET_MISSING
            elif existing.full_path == winner.full_path or same_content(existing, winner):
                continue
            else:
                reason = REASON_TARGET_STALE

            action = SyncAction(
                source=winner.full_path,
                target=location.target_path(rel),
                rel_path=rel,
                reason=reason,
                target_index=idx,
            )
            plan.actions.append(action)
            ctx.log(
                "DEBUG",
                "planner",
                "action_planned",
                json.dumps({"rel_path": rel, "source": str(action.source), "target": str(action.target), "reason": reason}),
            )

    ctx.log(
        "INFO",
        "planner",
        "plan_ready",
        json.dumps({"paths": len(all_paths), "actions": len(plan.actions), "conflicts": plan.conflicts, "skipped": len(plan.skipped)}),
    )
    return plan


def plan_actions(
    inventories: List[Dict[str, FileRecord]],
    locations: List[Location],
    ctx: RunContext,
    chooser: Optional[Chooser] = None,
) -> List[SyncAction]:
    return build_plan(inventories, locations, ctx, chooser).actions
