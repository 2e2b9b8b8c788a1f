from __future__ import annotations

import logging
from pathlib import Path

LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"


def setup_logging(level: str, logfile: str):
    Path(logfile).parent.mkdir(parents=True, exist_ok=True)

    log_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(log_level)

    # Clear existing handlers so repeated CLI invocations in one process don't duplicate lines.
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(LOG_FORMAT)

    fh = logging.FileHandler(logfile, encoding="utf-8")
    fh.setLevel(log_level)
    fh.setFormatter(fmt)
    root.addHandler(fh)

    ch = logging.StreamHandler()
    ch.setLevel(log_level)
    ch.setFormatter(fmt)
    root.addHandler(ch)

    root.debug("logging initialized")


def make_log_func(verbose: bool = False):
    """Return a ``log_func(level, module, message, detail)`` callback bound to stdlib logging."""

    def log_func(level: str, module: str, message: str, detail: str | None = None):
        lvl = level.upper()
        if lvl == "WARN":
            lvl = "WARNING"
        if lvl == "DEBUG" and not verbose:
            return
        logging.getLogger(module).log(
            getattr(logging, lvl, logging.INFO),
            f"{message} {detail or ''}".strip(),
        )

    return log_func
