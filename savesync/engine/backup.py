from __future__ import annotations

import json
import re
import shutil
from pathlib import Path
from typing import Dict, Optional

from .context import RunContext
from .models import BackupResult, FileRecord, Location, join_rel

_UNSAFE_CHARS_RE = re.compile(r"[\\/:*?\"<>|\s]+")


def sanitize_address(address: str) -> str:
    """Turn ``\\\\nas\\saves\\psx`` into ``nas_saves_psx`` and ``C:\\Saves`` into ``C_Saves``."""
    cleaned = _UNSAFE_CHARS_RE.sub("_", address.strip())
    return cleaned.strip("_") or "root"


def backup_dir_for(location: Location, archive_root: str, ctx: RunContext) -> Path:
    return Path(archive_root).expanduser() / f"{sanitize_address(location.address)}_{ctx.run_stamp}"


def backup_inventory(
    inventory: Dict[str, FileRecord],
    location: Location,
    archive_root: str,
    ctx: RunContext,
) -> Optional[BackupResult]:
    target_root = backup_dir_for(location, archive_root, ctx)
    result = BackupResult(path=target_root)

    if ctx.dry_run:
        ctx.log(
            "INFO",
            "backup",
            "dry_run_would_backup",
            json.dumps({"location": location.address, "path": str(target_root), "files": len(inventory)}),
        )
        return result

    if not inventory:
        ctx.log("INFO", "backup", "nothing_to_backup", json.dumps({"location": location.address}))
        return result

    try:
        target_root.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        ctx.log("ERROR", "backup", "backup_dir_failed", json.dumps({"path": str(target_root), "error": str(e)}))
        return None

    for rel in sorted(inventory):
        record = inventory[rel]
        dest = join_rel(target_root, rel)
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(record.full_path, dest)
            result.copied += 1
        except OSError as e:
            result.failed += 1
            ctx.log("WARN", "backup", "backup_copy_failed", json.dumps({"file": str(record.full_path), "error": str(e)}))

    ctx.log(
        "INFO",
        "backup",
        "backup_complete",
        json.dumps({"location": location.address, "path": str(target_root), "copied": result.copied, "failed": result.failed}),
    )
    return result
