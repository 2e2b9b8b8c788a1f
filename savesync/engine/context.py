from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

LogFunc = Callable[[str, str, str, Optional[str]], None]


def _silent(level: str, module: str, message: str, detail: Optional[str] = None):
    return None


@dataclass
class RunContext:
    """Per-run settings threaded through every engine call."""

    policy: str = "newest"
    dry_run: bool = False
    verbose: bool = False
    archive_root: str = ""
    probe_port: int = 445
    probe_timeout_sec: float = 2.0
    started_at: datetime = field(default_factory=datetime.now)
    log_func: LogFunc = _silent

    @property
    def run_stamp(self) -> str:
        return self.started_at.strftime("%Y%m%d_%H%M%S")

    def log(self, level: str, module: str, message: str, detail: Optional[str] = None):
        if level.upper() == "DEBUG" and not self.verbose:
            return
        self.log_func(level, module, message, detail)
