from __future__ import annotations

import hashlib
import os
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Optional

NETWORK_ADDRESS_RE = re.compile(r"^(?:\\\\|//)(?P<host>[^\\/]+)[\\/]")

REASON_TARGET_MISSING = "target-missing"
REASON_TARGET_STALE = "target-stale"


def md5_file(path: Path) -> str:
    h = hashlib.md5()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(1024 * 64), b""):
            h.update(chunk)
    return h.hexdigest()


def join_rel(root: Path, rel_path: str) -> Path:
    return root.joinpath(*PurePosixPath(rel_path).parts)


def safe_rel_path(value: str) -> str:
    """Canonical relative path: forward slashes, no leading separator.

    Only the running platform's separators are rewritten, so a backslash
    inside a POSIX file name stays part of the name.
    """
    for sep in (os.sep, os.altsep):
        if sep and sep != "/":
            value = value.replace(sep, "/")
    return value.lstrip("/")


class LocationState(str, Enum):
    UNKNOWN = "unknown"
    REACHABLE = "reachable"
    UNREACHABLE = "unreachable"


@dataclass
class Location:
    address: str
    state: LocationState = LocationState.UNKNOWN
    exists: bool = False

    @property
    def host(self) -> Optional[str]:
        match = NETWORK_ADDRESS_RE.match(self.address)
        return match.group("host") if match else None

    @property
    def is_network(self) -> bool:
        return self.host is not None

    @property
    def root(self) -> Path:
        return Path(self.address).expanduser()

    def target_path(self, rel_path: str) -> Path:
        return join_rel(self.root, rel_path)


@dataclass
class FileRecord:
    rel_path: str
    full_path: Path
    mtime: float
    size: int
    location_index: int = 0
    hash: Optional[str] = None
    hash_failed: bool = False

    def ensure_hash(self) -> Optional[str]:
        """Compute the content hash once; ``None`` if the file can't be read."""
        if self.hash is None and not self.hash_failed:
            try:
                self.hash = md5_file(self.full_path)
            except OSError:
                self.hash_failed = True
        return self.hash

    def describe(self) -> dict:
        return {
            "path": str(self.full_path),
            "mtime": self.mtime,
            "size": self.size,
            "hash": self.hash,
        }


def same_content(a: FileRecord, b: FileRecord) -> bool:
    ha = a.ensure_hash()
    hb = b.ensure_hash()
    return ha is not None and ha == hb


@dataclass(frozen=True)
class SyncAction:
    source: Path
    target: Path
    rel_path: str
    reason: str
    target_index: int = 0


@dataclass
class BackupResult:
    path: Path
    copied: int = 0
    failed: int = 0


@dataclass
class ExecutionResult:
    succeeded: int = 0
    failed: int = 0


@dataclass
class RunSummary:
    result: str = "ok"
    dry_run: bool = False
    policy: str = ""
    locations_total: int = 0
    locations_reachable: int = 0
    unreachable: list[str] = field(default_factory=list)
    files_seen: int = 0
    conflicts: int = 0
    skipped_paths: int = 0
    planned: int = 0
    succeeded: int = 0
    failed: int = 0
    backups: list[str] = field(default_factory=list)
    backup_failures: int = 0
    started_at: str = ""
    finished_at: str = ""

    def to_dict(self) -> dict:
        return dict(self.__dict__)
