from pathlib import Path

import pytest

from savesync.core.config import DeviceConfig
from savesync.device.adb import DeviceError
from savesync.device.emulator_config import detect_adb_port, parse_key_values, resolve_device_address

CONF = """\
# BlueStacks config
bst.instance.Nougat64.status.adb_port="5555"
bst.instance.Pie64_1.status.adb_port="5565"
bst.instance.Broken.status.adb_port="abc"
bst.feature.rooting="0"
"""


def _conf(tmp_path: Path) -> Path:
    path = tmp_path / "bluestacks.conf"
    path.write_text(CONF, encoding="utf-8")
    return path


def test_parse_key_values_strips_quotes_and_comments():
    values = parse_key_values(CONF)

    assert values["bst.instance.Pie64_1.status.adb_port"] == "5565"
    assert values["bst.feature.rooting"] == "0"
    assert not any(k.startswith("#") for k in values)


def test_detect_adb_port_for_instance(tmp_path: Path):
    assert detect_adb_port(str(_conf(tmp_path)), "Pie64_1") == 5565


def test_unknown_instance_lists_known_keys(tmp_path: Path):
    with pytest.raises(DeviceError) as exc:
        detect_adb_port(str(_conf(tmp_path)), "Rvc64")

    assert "Nougat64" in str(exc.value)


def test_invalid_port_value(tmp_path: Path):
    with pytest.raises(DeviceError):
        detect_adb_port(str(_conf(tmp_path)), "Broken")


def test_missing_config_file(tmp_path: Path):
    with pytest.raises(DeviceError):
        detect_adb_port(str(tmp_path / "missing.conf"), "Nougat64")


def test_resolve_device_address_prefers_explicit_address(tmp_path: Path):
    cfg = DeviceConfig(address="192.168.1.50:5555", emulator_config=str(_conf(tmp_path)))

    assert resolve_device_address(cfg) == "192.168.1.50:5555"


def test_resolve_device_address_from_emulator_config(tmp_path: Path):
    cfg = DeviceConfig(emulator_config=str(_conf(tmp_path)), instance="Nougat64", host="127.0.0.1")

    assert resolve_device_address(cfg) == "127.0.0.1:5555"


def test_resolve_device_address_requires_some_source():
    with pytest.raises(DeviceError):
        resolve_device_address(DeviceConfig())
