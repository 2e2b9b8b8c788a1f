"""Conflict resolution between records that share a relative path.

``classify`` is pure apart from lazy hashing: it never prompts. Manual
decisions come back as ``NEEDS_MANUAL`` and ``resolve`` hands them to a
chooser callback supplied by the caller (the CLI prompts on the console).
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Callable, List, Optional

from .context import RunContext
from .models import FileRecord

POLICY_NEWEST = "newest"
POLICY_LARGEST = "largest"
POLICY_MANUAL = "manual"
KNOWN_POLICIES = (POLICY_NEWEST, POLICY_LARGEST, POLICY_MANUAL)

IDENTICAL = "identical"
WINNER = "winner"
NEEDS_MANUAL = "needs_manual"
FALLBACK = "fallback"

CHOICE_A = "a"
CHOICE_B = "b"
CHOICE_SKIP = "skip"

Chooser = Callable[[FileRecord, FileRecord], str]


@dataclass
class Resolution:
    outcome: str
    winner: Optional[FileRecord] = None
    reason: str = ""


def normalize_policy(policy: str) -> str:
    return (policy or "").strip().lower()


def classify(a: FileRecord, b: FileRecord, policy: str, ctx: RunContext) -> Resolution:
    ha = a.ensure_hash()
    hb = b.ensure_hash()
    if ha is not None and ha == hb:
        return Resolution(IDENTICAL, a, "hash_equal")
    if ha is None or hb is None:
        ctx.log(
            "WARN",
            "resolver",
            "hash_unavailable",
            json.dumps({"rel_path": a.rel_path, "a": str(a.full_path), "b": str(b.full_path), "note": "using policy fields only"}),
        )

    name = normalize_policy(policy)
    if name == POLICY_NEWEST:
        # Equal mtimes keep the left record (earlier location in the configured order).
        if b.mtime > a.mtime:
            return Resolution(WINNER, b, "newer_mtime")
        return Resolution(WINNER, a, "newer_mtime" if a.mtime > b.mtime else "mtime_tie_keep_first")
    if name == POLICY_LARGEST:
        if b.size > a.size:
            return Resolution(WINNER, b, "larger_size")
        return Resolution(WINNER, a, "larger_size" if a.size > b.size else "size_tie_keep_first")
    if name == POLICY_MANUAL:
        return Resolution(NEEDS_MANUAL, None, "manual_policy")

    ctx.log(
        "ERROR",
        "resolver",
        "unknown_policy",
        json.dumps({"policy": policy, "known": list(KNOWN_POLICIES), "fallback": str(a.full_path)}),
    )
    return Resolution(FALLBACK, a, "unknown_policy")


def resolve(a: FileRecord, b: FileRecord, ctx: RunContext, chooser: Optional[Chooser] = None) -> Optional[FileRecord]:
    res = classify(a, b, ctx.policy, ctx)
    if res.outcome == NEEDS_MANUAL:
        if chooser is None:
            ctx.log("WARN", "resolver", "manual_no_operator", json.dumps({"rel_path": a.rel_path, "action": "skip"}))
            return None
        choice = (chooser(a, b) or "").strip().lower()
        if choice == CHOICE_A:
            res = Resolution(WINNER, a, "manual_choice_a")
        elif choice == CHOICE_B:
            res = Resolution(WINNER, b, "manual_choice_b")
        else:
            ctx.log("INFO", "resolver", "manual_skip", json.dumps({"rel_path": a.rel_path}))
            return None

    level = "DEBUG" if res.outcome == IDENTICAL else "INFO"
    ctx.log(
        level,
        "resolver",
        "conflict_resolved",
        json.dumps(
            {
                "rel_path": a.rel_path,
                "outcome": res.outcome,
                "reason": res.reason,
                "winner": str(res.winner.full_path),
                "a": a.describe(),
                "b": b.describe(),
            }
        ),
    )
    return res.winner


def resolve_group(records: List[FileRecord], ctx: RunContext, chooser: Optional[Chooser] = None) -> Optional[FileRecord]:
    """Left fold over ``records``; ``None`` means the path is skipped for this run."""
    if not records:
        return None
    current = records[0]
    for candidate in records[1:]:
        current.ensure_hash()
        winner = resolve(current, candidate, ctx, chooser)
        if winner is None:
            return None
        current = winner
    return current
