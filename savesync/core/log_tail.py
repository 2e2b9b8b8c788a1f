from __future__ import annotations

import re
from pathlib import Path


LOG_LINE_RE = re.compile(
    r"^(?P<ts>\S+\s+\S+)\s+\[(?P<level>[A-Z]+)\]\s+\[(?P<module>[^\]]+)\]\s*(?P<event>\S*)\s*(?P<detail>.*)$"
)

LEVEL_ORDER = {"DEBUG": 10, "INFO": 20, "WARNING": 30, "ERROR": 40, "CRITICAL": 50}


def _tail_lines(path: str, n: int = 200) -> list[str]:
    p = Path(path)
    if not p.exists():
        return []
    lines = p.read_text(encoding="utf-8", errors="replace").splitlines()
    return lines[-n:]


def parse_line(line: str) -> dict[str, str]:
    match = LOG_LINE_RE.match(line)
    if not match:
        return {"raw": line, "ts": "", "level": "", "module": "", "event": "", "detail": line}
    parsed = match.groupdict()
    return {
        "raw": line,
        "ts": parsed.get("ts", ""),
        "level": parsed.get("level", ""),
        "module": parsed.get("module", ""),
        "event": parsed.get("event", ""),
        "detail": parsed.get("detail", ""),
    }


def build_log_tail_payload(
    path: str,
    n: int = 200,
    min_level: str | None = None,
    module: str | None = None,
    event: str | None = None,
) -> dict:
    """Tail the savesync log and filter it.

    ``min_level`` keeps lines at or above the given severity; ``module`` and
    ``event`` are exact (case-insensitive) matches. Lines that don't follow the
    log format are dropped when any filter is active.
    """
    level_wanted = (min_level or "").strip().upper() or None
    if level_wanted == "WARN":
        level_wanted = "WARNING"
    threshold = LEVEL_ORDER.get(level_wanted or "", 0)
    module_wanted = (module or "").strip().lower() or None
    event_wanted = (event or "").strip().lower() or None

    items: list[dict[str, str]] = []
    counts: dict[str, int] = {}
    for line in _tail_lines(path, n=n):
        item = parse_line(line)
        if threshold and LEVEL_ORDER.get(item["level"], 0) < threshold:
            continue
        if module_wanted and item["module"].strip().lower() != module_wanted:
            continue
        if event_wanted and item["event"].strip().lower() != event_wanted:
            continue
        if item["level"]:
            counts[item["level"]] = counts.get(item["level"], 0) + 1
        items.append(item)

    return {
        "path": path,
        "n": n,
        "min_level": level_wanted,
        "module": module_wanted,
        "event": event_wanted,
        "count": len(items),
        "level_counts": counts,
        "tail": "\n".join(item["raw"] for item in items),
        "items": items,
    }
