from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional

import typer
from rich.console import Console
from rich.prompt import Prompt
from rich.table import Table

from savesync.core.config import (
    DEFAULT_CONFIG_PATH,
    LAST_RUN_PATH,
    AppConfig,
    load_config,
)
from savesync.core.log_tail import build_log_tail_payload
from savesync.core.logging_setup import make_log_func, setup_logging
from savesync.device import PULL, PUSH, AdbTransport, DeviceError, detect_adb_port, resolve_device_address
from savesync.engine import ExitCode, RunContext, run_merge
from savesync.engine.db import init_db, record_run, recent_runs
from savesync.engine.models import FileRecord
from savesync.engine.resolver import CHOICE_SKIP, KNOWN_POLICIES, normalize_policy
from savesync.engine.runner import RESULT_ERROR, exit_code_for

app = typer.Typer(add_completion=False)
hook_app = typer.Typer(add_completion=False, help="Launcher pre/post-run hooks.")
app.add_typer(hook_app, name="hook")
console = Console()
log = logging.getLogger("cli")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _load(config_path: Path, verbose: bool = False) -> AppConfig:
    try:
        cfg = load_config(config_path)
        setup_logging("DEBUG" if verbose else cfg.logging.level, cfg.logging.file)
    except Exception as e:
        log.exception("config_load_failed path=%s", config_path)
        print(json.dumps({"ok": False, "error": "config_load_failed", "detail": str(e)}, ensure_ascii=False, indent=2))
        raise typer.Exit(int(ExitCode.UNEXPECTED))
    return cfg


def _fmt_mtime(ts: float) -> str:
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M:%S")


def prompt_choice(a: FileRecord, b: FileRecord) -> str:
    """Ask the operator which copy wins; blocks until answered."""
    table = Table(title=f"Conflict: {a.rel_path}")
    table.add_column("Choice")
    table.add_column("Path")
    table.add_column("Modified")
    table.add_column("Size")
    table.add_column("MD5")
    for key, rec in (("a", a), ("b", b)):
        table.add_row(key, str(rec.full_path), _fmt_mtime(rec.mtime), str(rec.size), rec.hash or "-")
    console.print(table)
    return Prompt.ask("Keep which version?", choices=["a", "b", CHOICE_SKIP], default=CHOICE_SKIP, console=console)


def _write_last_run(summary: dict) -> None:
    LAST_RUN_PATH.parent.mkdir(parents=True, exist_ok=True)
    LAST_RUN_PATH.write_text(json.dumps(summary, ensure_ascii=False, indent=2), encoding="utf-8")


def _merge(
    cfg: AppConfig,
    locations: Optional[List[str]],
    archive_root: Optional[str],
    policy: Optional[str],
    dry_run: bool,
    verbose: bool,
    run_type: str,
) -> int:
    addresses = list(locations or cfg.merge.locations)
    if not addresses:
        print(json.dumps({"ok": False, "error": "no_locations_configured"}, ensure_ascii=False, indent=2))
        return int(ExitCode.NO_LOCATIONS)

    ctx = RunContext(
        policy=policy or cfg.merge.policy,
        dry_run=dry_run or cfg.merge.dry_run,
        verbose=verbose,
        archive_root=archive_root or cfg.merge.archive_root,
        probe_port=cfg.merge.probe_port,
        probe_timeout_sec=cfg.merge.probe_timeout_sec,
        log_func=make_log_func(verbose),
    )
    chooser = prompt_choice if normalize_policy(ctx.policy) == "manual" else None

    try:
        summary = run_merge(addresses, ctx, chooser).to_dict()
    except Exception as e:
        log.exception("run_unexpected_failure")
        summary = {"result": RESULT_ERROR, "error": str(e), "checked_at": _now_iso()}

    summary["run_type"] = run_type
    if not ctx.dry_run:
        try:
            init_db(cfg.database.path)
            record_run(cfg.database.path, run_type, summary)
            _write_last_run(summary)
        except Exception as e:
            log.warning("run_history_write_failed %s", e)

    print(json.dumps(summary, ensure_ascii=False, indent=2))
    return int(exit_code_for(summary.get("result", RESULT_ERROR)))


def _transfer_pairs(cfg: AppConfig, remote: Optional[str], local: Optional[str]) -> list[tuple[str, str]]:
    if remote or local:
        if not (remote and local):
            raise typer.BadParameter("--remote and --local must be given together")
        return [(remote, local)]
    return [(t.remote_path, t.local_path) for t in cfg.device.transfers]


def _device_transfer(cfg: AppConfig, direction: str, remote: Optional[str], local: Optional[str]) -> int:
    pairs = _transfer_pairs(cfg, remote, local)
    if not pairs:
        print(json.dumps({"ok": False, "error": "no_transfers_configured"}, ensure_ascii=False, indent=2))
        return int(ExitCode.TRANSFER_FAILED)

    out: dict[str, Any] = {"ok": False, "direction": direction, "checked_at": _now_iso(), "transfers": []}
    try:
        address = resolve_device_address(cfg.device)
        transport = AdbTransport(
            adb_path=cfg.device.adb_path,
            retries=cfg.device.retries,
            retry_delay_sec=cfg.device.retry_delay_sec,
            timeout_sec=cfg.device.timeout_sec,
        )
        out["device"] = address
        if not transport.connect(address):
            out["error"] = f"device_unavailable: {address}"
            print(json.dumps(out, ensure_ascii=False, indent=2))
            return int(ExitCode.TRANSFER_FAILED)
        for remote_path, local_path in pairs:
            res = transport.transfer(direction, remote_path, local_path, address)
            out["transfers"].append(
                {
                    "remote": remote_path,
                    "local": local_path,
                    "success": res.success,
                    "exit_code": res.exit_code,
                    "output": res.output_lines,
                }
            )
    except DeviceError as e:
        out["error"] = str(e)
        print(json.dumps(out, ensure_ascii=False, indent=2))
        return int(ExitCode.TRANSFER_FAILED)

    out["ok"] = all(t["success"] for t in out["transfers"])
    print(json.dumps(out, ensure_ascii=False, indent=2))
    return int(ExitCode.OK if out["ok"] else ExitCode.TRANSFER_FAILED)


@app.command()
def merge(
    location: Optional[List[str]] = typer.Option(
        None, "--location", "-l", help="Location to merge (repeatable). Defaults to merge.locations."
    ),
    archive_root: Optional[str] = typer.Option(None, "--archive-root", help="Where backups are written."),
    policy: Optional[str] = typer.Option(None, "--policy", help="newest | largest | manual"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Log intended actions only."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug-level diagnostics."),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config"),
):
    """Back up and merge save directories across locations."""
    cfg = _load(config, verbose)
    code = _merge(cfg, location, archive_root, policy, dry_run, verbose, "manual_cli")
    if code:
        raise typer.Exit(code)


@app.command()
def pull(
    remote: Optional[str] = typer.Option(None, "--remote", help="Device path."),
    local: Optional[str] = typer.Option(None, "--local", help="Host path."),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config"),
):
    """Pull saves from the Android device."""
    cfg = _load(config)
    code = _device_transfer(cfg, PULL, remote, local)
    if code:
        raise typer.Exit(code)


@app.command()
def push(
    remote: Optional[str] = typer.Option(None, "--remote", help="Device path."),
    local: Optional[str] = typer.Option(None, "--local", help="Host path."),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config"),
):
    """Push saves to the Android device."""
    cfg = _load(config)
    code = _device_transfer(cfg, PUSH, remote, local)
    if code:
        raise typer.Exit(code)


@hook_app.command("pre")
def hook_pre(
    dry_run: bool = typer.Option(False, "--dry-run"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config"),
):
    """Before launch: pull from the device, then merge."""
    cfg = _load(config, verbose)
    if cfg.device.transfers and not dry_run:
        pulled = _device_transfer(cfg, PULL, None, None)
        if pulled:
            log.warning("hook_pre_pull_failed exit_code=%s; merging anyway", pulled)
    code = _merge(cfg, None, None, None, dry_run, verbose, "hook_pre")
    if code:
        raise typer.Exit(code)


@hook_app.command("post")
def hook_post(
    dry_run: bool = typer.Option(False, "--dry-run"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config"),
):
    """After exit: merge, then push to the device."""
    cfg = _load(config, verbose)
    code = _merge(cfg, None, None, None, dry_run, verbose, "hook_post")
    if code:
        raise typer.Exit(code)
    if cfg.device.transfers and not dry_run:
        pushed = _device_transfer(cfg, PUSH, None, None)
        if pushed:
            raise typer.Exit(pushed)


@app.command("detect-port")
def detect_port(config: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config")):
    """Read the adb port of the configured emulator instance."""
    cfg = load_config(config)
    try:
        port = detect_adb_port(cfg.device.emulator_config, cfg.device.instance, cfg.device.port_key_template)
    except DeviceError as e:
        print(json.dumps({"ok": False, "error": str(e)}, ensure_ascii=False, indent=2))
        raise typer.Exit(int(ExitCode.TRANSFER_FAILED))
    print(
        json.dumps(
            {"ok": True, "instance": cfg.device.instance, "port": port, "address": f"{cfg.device.host}:{port}"},
            ensure_ascii=False,
            indent=2,
        )
    )


@app.command("config-show")
def config_show(config: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config")):
    """Show current config.yaml."""
    cfg = load_config(config)
    print(json.dumps(cfg.model_dump(), ensure_ascii=False, indent=2))


@app.command("config-validate")
def config_validate(
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config"),
    strict: bool = typer.Option(False, "--strict", help="Return non-zero when validation fails."),
):
    """Validate config and runtime prerequisites."""
    out: dict[str, Any] = {
        "ok": True,
        "checked_at": _now_iso(),
        "config_path": str(config),
        "checks": {
            "config_exists": config.exists(),
            "locations_configured": False,
            "policy_known": False,
            "archive_root_ready": False,
            "device_configured": False,
        },
        "warnings": [],
        "errors": [],
    }

    try:
        cfg = load_config(config)
    except Exception as e:
        out["ok"] = False
        out["errors"].append(f"load_config_failed: {e}")
        print(json.dumps(out, ensure_ascii=False, indent=2))
        if strict:
            raise typer.Exit(2)
        return

    n_locations = len(cfg.merge.locations)
    out["checks"]["locations_configured"] = n_locations > 0
    if n_locations == 0:
        out["errors"].append("locations_missing")
    elif n_locations == 1:
        out["warnings"].append("single_location: runs will only back up")

    out["checks"]["policy_known"] = normalize_policy(cfg.merge.policy) in KNOWN_POLICIES
    if not out["checks"]["policy_known"]:
        out["warnings"].append(f"policy_unknown: {cfg.merge.policy!r} falls back to the first location's copy")

    archive = Path(cfg.merge.archive_root).expanduser()
    out["checks"]["archive_root_ready"] = archive.is_dir() or not archive.exists()
    if not out["checks"]["archive_root_ready"]:
        out["errors"].append(f"archive_root_not_a_directory: {archive}")

    out["checks"]["device_configured"] = bool(cfg.device.address or cfg.device.emulator_config)
    if cfg.device.transfers and not out["checks"]["device_configured"]:
        out["warnings"].append("device_transfers_without_address")

    out["ok"] = len(out["errors"]) == 0
    print(json.dumps(out, ensure_ascii=False, indent=2))
    if strict and not out["ok"]:
        raise typer.Exit(2)


@app.command()
def status(config: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config")):
    """Show configuration summary."""
    cfg = load_config(config)
    table = Table(title="savesync status")
    table.add_column("Key")
    table.add_column("Value")
    table.add_row("config", str(config))
    for idx, loc in enumerate(cfg.merge.locations, start=1):
        table.add_row(f"location[{idx}]", loc)
    table.add_row("policy", cfg.merge.policy)
    table.add_row("archive_root", cfg.merge.archive_root)
    table.add_row("dry_run", "yes" if cfg.merge.dry_run else "no")
    table.add_row("device", cfg.device.address or f"(detect from {cfg.device.emulator_config or 'unset'})")
    table.add_row("transfers", str(len(cfg.device.transfers)))
    table.add_row("db", cfg.database.path)
    table.add_row("log", cfg.logging.file)
    console.print(table)


@app.command()
def history(
    limit: int = typer.Option(10, "--limit", min=1),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config"),
):
    """Show recent merge runs."""
    cfg = load_config(config)
    init_db(cfg.database.path)
    table = Table(title="recent runs")
    for col in ("id", "type", "status", "started", "planned", "ok", "failed"):
        table.add_column(col)
    for row in recent_runs(cfg.database.path, limit=limit):
        s = row["summary"]
        table.add_row(
            str(row["id"]),
            row["run_type"] or "",
            row["status"] or "",
            row["started_at"] or "",
            str(s.get("planned", "-")),
            str(s.get("succeeded", "-")),
            str(s.get("failed", "-")),
        )
    console.print(table)


@app.command("logs-tail")
def logs_tail(
    n: int = typer.Option(200, "--n", min=1),
    level: Optional[str] = typer.Option(None, "--level", help="Minimum log level (e.g. WARNING)."),
    module: Optional[str] = typer.Option(None, "--module", help="Logger name, e.g. executor."),
    event: Optional[str] = typer.Option(None, "--event", help="Event name, e.g. copy_failed."),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON."),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config"),
):
    """Tail the savesync log file."""
    cfg = load_config(config)
    payload = build_log_tail_payload(cfg.logging.file, n=n, min_level=level, module=module, event=event)
    if json_output:
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return
    print(payload.get("tail", ""))


def main():
    app()


if __name__ == "__main__":
    main()
