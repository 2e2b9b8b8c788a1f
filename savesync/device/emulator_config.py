from __future__ import annotations

from pathlib import Path

from .adb import DeviceError


def parse_key_values(text: str) -> dict[str, str]:
    """Parse ``key="value"`` lines (BlueStacks ``bluestacks.conf`` style)."""
    out: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        k, v = line.split("=", 1)
        v = v.strip()
        if len(v) >= 2 and v[0] == v[-1] and v[0] in "\"'":
            v = v[1:-1]
        out[k.strip()] = v
    return out


def detect_adb_port(path: str, instance: str, key_template: str = "bst.instance.{instance}.status.adb_port") -> int:
    p = Path(path).expanduser()
    if not p.exists():
        raise DeviceError(f"emulator_config_missing: {p}")
    values = parse_key_values(p.read_text(encoding="utf-8", errors="replace"))
    key = key_template.format(instance=instance)
    raw = values.get(key)
    if raw is None:
        known = sorted(k for k in values if k.endswith(key_template.rsplit("}", 1)[-1]))
        raise DeviceError(f"emulator_instance_unknown: {instance} (known keys: {', '.join(known) or 'none'})")
    try:
        port = int(raw)
    except ValueError as e:
        raise DeviceError(f"emulator_port_invalid: {key}={raw}") from e
    if not 1 <= port <= 65535:
        raise DeviceError(f"emulator_port_out_of_range: {port}")
    return port


def resolve_device_address(device_cfg) -> str:
    """Configured ``device.address`` wins; otherwise ``host:<port from emulator config>``."""
    address = str(device_cfg.address or "").strip()
    if address:
        return address
    if not device_cfg.emulator_config:
        raise DeviceError("device_address_unset: set device.address or device.emulator_config")
    port = detect_adb_port(device_cfg.emulator_config, device_cfg.instance, device_cfg.port_key_template)
    return f"{device_cfg.host}:{port}"
