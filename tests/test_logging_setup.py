import logging
from pathlib import Path

from savesync.core.log_tail import build_log_tail_payload
from savesync.core.logging_setup import make_log_func, setup_logging


def _reset_root():
    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()


def test_setup_logging_writes_parseable_lines(tmp_path: Path):
    logfile = tmp_path / "runtime" / "savesync.log"
    try:
        setup_logging("INFO", str(logfile))
        log_func = make_log_func(verbose=False)
        log_func("WARN", "probe", "host_probe_negative", '{"host": "nas"}')
        log_func("DEBUG", "planner", "action_planned", "{}")
        for h in logging.getLogger().handlers:
            h.flush()

        payload = build_log_tail_payload(str(logfile), module="probe")
    finally:
        _reset_root()

    assert payload["count"] == 1
    assert payload["items"][0]["level"] == "WARNING"
    assert payload["items"][0]["event"] == "host_probe_negative"
    assert "action_planned" not in logfile.read_text(encoding="utf-8")


def test_verbose_log_func_emits_debug(caplog):
    log_func = make_log_func(verbose=True)

    with caplog.at_level(logging.DEBUG, logger="planner"):
        log_func("DEBUG", "planner", "action_planned", '{"rel_path": "save.dat"}')

    assert any(r.name == "planner" and "action_planned" in r.getMessage() for r in caplog.records)
