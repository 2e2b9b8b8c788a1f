from pathlib import Path

from savesync.engine import probe as probe_module
from savesync.engine.context import RunContext
from savesync.engine.models import Location, LocationState


class _Conn:
    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


def _ctx(logs: list | None = None, **kwargs) -> RunContext:
    sink = logs if logs is not None else []
    return RunContext(log_func=lambda *args: sink.append(args), **kwargs)


def test_existing_directory_is_reachable(tmp_path: Path):
    loc = Location(str(tmp_path))

    assert probe_module.probe_location(loc, _ctx()) == LocationState.REACHABLE
    assert loc.exists is True


def test_missing_directory_is_created(tmp_path: Path):
    target = tmp_path / "saves" / "psx"
    loc = Location(str(target))

    state = probe_module.probe_location(loc, _ctx())

    assert state == LocationState.REACHABLE
    assert target.is_dir()
    assert loc.exists is True


def test_dry_run_does_not_create_directory(tmp_path: Path):
    target = tmp_path / "saves"
    loc = Location(str(target))
    logs: list = []

    state = probe_module.probe_location(loc, _ctx(logs, dry_run=True))

    assert state == LocationState.REACHABLE
    assert loc.exists is False
    assert not target.exists()
    assert any(entry[2] == "dry_run_would_create" for entry in logs)


def test_unlistable_and_uncreatable_location_is_unreachable(tmp_path: Path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a dir", encoding="utf-8")
    loc = Location(str(blocker / "saves"))
    logs: list = []

    state = probe_module.probe_location(loc, _ctx(logs))

    assert state == LocationState.UNREACHABLE
    assert loc.state == LocationState.UNREACHABLE
    assert any(entry[0] == "ERROR" and entry[2] == "location_unreachable" for entry in logs)


def test_negative_host_probe_is_only_a_warning(monkeypatch, tmp_path: Path):
    calls = []
    monkeypatch.setattr(probe_module, "host_reachable", lambda host, ctx: calls.append(host) or False)
    monkeypatch.setattr(Location, "host", property(lambda self: "nas"))
    logs: list = []

    state = probe_module.probe_location(Location(str(tmp_path)), _ctx(logs))

    assert calls == ["nas"]
    assert state == LocationState.REACHABLE
    assert any(entry[0] == "WARN" and entry[2] == "host_probe_negative" for entry in logs)


def test_host_reachable_uses_bounded_timeout(monkeypatch):
    seen = {}

    def fake_connect(addr, timeout):
        seen["addr"] = addr
        seen["timeout"] = timeout
        return _Conn()

    monkeypatch.setattr(probe_module.socket, "create_connection", fake_connect)

    assert probe_module.host_reachable("nas", _ctx(probe_timeout_sec=30, probe_port=139)) is True
    assert seen == {"addr": ("nas", 139), "timeout": 2.0}


def test_host_reachable_false_on_socket_error(monkeypatch):
    def fake_connect(addr, timeout):
        raise OSError("connection refused")

    monkeypatch.setattr(probe_module.socket, "create_connection", fake_connect)

    assert probe_module.host_reachable("nas", _ctx()) is False


def test_network_address_host_parsing():
    assert Location(r"\\nas\games\saves").host == "nas"
    assert Location("//192.168.1.20/share/saves").host == "192.168.1.20"
    assert Location("/home/player/saves").host is None
    assert Location(r"C:\Users\player\Saves").host is None
