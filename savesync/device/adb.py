from __future__ import annotations

import json
import logging
import shutil
import subprocess
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

logger = logging.getLogger("device")

PULL = "pull"
PUSH = "push"


class DeviceError(RuntimeError):
    pass


@dataclass
class TransferResult:
    success: bool
    exit_code: int
    output_lines: List[str] = field(default_factory=list)


def _default_runner(args: list[str], timeout_sec: int) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        args,
        capture_output=True,
        text=True,
        timeout=timeout_sec,
        check=False,
    )


def _output_lines(proc: subprocess.CompletedProcess[str]) -> List[str]:
    text = "\n".join(part for part in (proc.stdout, proc.stderr) if part)
    return [line.rstrip() for line in text.splitlines() if line.strip()]


def parse_devices(text: str) -> dict[str, str]:
    """Parse ``adb devices`` output into ``{serial: state}``."""
    out: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("List of devices") or line.startswith("*"):
            continue
        parts = line.split()
        if len(parts) >= 2:
            out[parts[0]] = parts[1]
    return out


class AdbTransport:
    def __init__(
        self,
        adb_path: str = "adb",
        retries: int = 3,
        retry_delay_sec: float = 2.0,
        timeout_sec: int = 60,
        runner: Optional[Callable[[list[str], int], subprocess.CompletedProcess[str]]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.adb_path = adb_path
        self.retries = max(1, int(retries))
        self.retry_delay_sec = retry_delay_sec
        self.timeout_sec = timeout_sec
        self.runner = runner or _default_runner
        self.sleep = sleep

    def _run(self, args: list[str]) -> subprocess.CompletedProcess[str]:
        cmd = [self.adb_path, *args]
        try:
            return self.runner(cmd, self.timeout_sec)
        except FileNotFoundError as e:
            raise DeviceError(f"adb_not_found: {self.adb_path}") from e
        except subprocess.TimeoutExpired:
            logger.warning("adb_timeout %s", json.dumps({"cmd": cmd, "timeout_sec": self.timeout_sec}))
            return subprocess.CompletedProcess(cmd, -1, "", f"timeout after {self.timeout_sec}s")

    def devices(self) -> dict[str, str]:
        proc = self._run(["devices"])
        return parse_devices(proc.stdout or "")

    def connect(self, address: str) -> bool:
        for attempt in range(1, self.retries + 1):
            if ":" in address:
                self._run(["connect", address])
            state = self.devices().get(address)
            if state == "device":
                logger.info("device_connected %s", json.dumps({"address": address, "attempt": attempt}))
                return True
            logger.warning("device_not_ready %s", json.dumps({"address": address, "state": state, "attempt": attempt}))
            if attempt < self.retries:
                self.sleep(self.retry_delay_sec)
        return False

    def transfer(self, direction: str, remote_path: str, local_path: str, device_address: str) -> TransferResult:
        if direction not in (PULL, PUSH):
            raise ValueError(f"unknown transfer direction: {direction}")

        result = TransferResult(False, -1, [])
        for attempt in range(1, self.retries + 1):
            if direction == PULL:
                result = self._pull_once(remote_path, Path(local_path), device_address)
            else:
                result = self._push_once(remote_path, Path(local_path), device_address)
            if result.success:
                logger.info(
                    "transfer_ok %s",
                    json.dumps({"direction": direction, "remote": remote_path, "local": local_path, "attempt": attempt}),
                )
                return result
            logger.warning(
                "transfer_failed %s",
                json.dumps(
                    {
                        "direction": direction,
                        "remote": remote_path,
                        "local": local_path,
                        "attempt": attempt,
                        "exit_code": result.exit_code,
                        "output": result.output_lines[-5:],
                    },
                    ensure_ascii=False,
                ),
            )
            if attempt < self.retries:
                self.sleep(self.retry_delay_sec)
        return result

    def _push_once(self, remote_path: str, local_path: Path, device_address: str) -> TransferResult:
        if not local_path.exists():
            return TransferResult(False, -1, [f"local path missing: {local_path}"])
        proc = self._run(["-s", device_address, "push", str(local_path), remote_path])
        return TransferResult(proc.returncode == 0, proc.returncode, _output_lines(proc))

    def _pull_once(self, remote_path: str, local_path: Path, device_address: str) -> TransferResult:
        # Pull into a scratch dir first so a failed pull never touches local_path.
        local_path.parent.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=".savesync_pull_", dir=str(local_path.parent)))
        try:
            staged = staging / (local_path.name or "pulled")
            proc = self._run(["-s", device_address, "pull", remote_path, str(staged)])
            result = TransferResult(proc.returncode == 0, proc.returncode, _output_lines(proc))
            if not result.success or not staged.exists():
                result.success = False
                return result
            if staged.is_dir():
                shutil.copytree(staged, local_path, dirs_exist_ok=True)
            else:
                shutil.copy2(staged, local_path)
            return result
        finally:
            shutil.rmtree(staging, ignore_errors=True)
