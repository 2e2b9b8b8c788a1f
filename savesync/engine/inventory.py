from __future__ import annotations

import json
import os
import stat
from pathlib import Path
from typing import Dict

from .context import RunContext
from .models import FileRecord, Location, safe_rel_path


def _raise(err: OSError):
    raise err


def scan_files(root: Path, location_index: int = 0) -> Dict[str, FileRecord]:
    """Walk ``root`` and return regular files keyed by canonical relative path.

    Symlinks are neither followed nor listed. Any ``OSError`` during the walk
    propagates to the caller.
    """
    files: Dict[str, FileRecord] = {}
    for dirpath, _dirnames, filenames in os.walk(root, onerror=_raise, followlinks=False):
        dir_path = Path(dirpath)
        for name in filenames:
            full = dir_path / name
            st = full.lstat()
            if not stat.S_ISREG(st.st_mode):
                continue
            rel = safe_rel_path(str(full.relative_to(root)))
            files[rel] = FileRecord(
                rel_path=rel,
                full_path=full,
                mtime=st.st_mtime,
                size=st.st_size,
                location_index=location_index,
            )
    return files


def build_inventory(location: Location, index: int, ctx: RunContext) -> Dict[str, FileRecord]:
    if not location.exists:
        ctx.log("DEBUG", "inventory", "location_missing_empty_inventory", json.dumps({"location": location.address}))
        return {}
    try:
        files = scan_files(location.root, index)
    except OSError as e:
        ctx.log(
            "WARN",
            "inventory",
            "scan_failed",
            json.dumps({"location": location.address, "error": str(e), "note": "treated as empty for this run"}),
        )
        return {}
    ctx.log("INFO", "inventory", "scan_complete", json.dumps({"location": location.address, "files": len(files)}))
    return files
