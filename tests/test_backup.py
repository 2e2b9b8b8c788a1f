from datetime import datetime
from pathlib import Path

from savesync.engine.backup import backup_dir_for, backup_inventory, sanitize_address
from savesync.engine.context import RunContext
from savesync.engine.inventory import scan_files
from savesync.engine.models import FileRecord, Location

RUN_AT = datetime(2026, 10, 19, 8, 30, 5)


def _ctx(**kwargs) -> RunContext:
    return RunContext(started_at=RUN_AT, **kwargs)


def _populate(root: Path) -> None:
    (root / "psx").mkdir(parents=True)
    (root / "psx" / "card1.mcr").write_bytes(b"\x00\x01" * 64)
    (root / "psx" / "card2.mcr").write_bytes(b"card2")
    (root / "save.dat").write_bytes(b"s" * 100)


def test_sanitize_address():
    assert sanitize_address(r"\\nas\saves\psx") == "nas_saves_psx"
    assert sanitize_address(r"C:\Saves") == "C_Saves"
    assert sanitize_address("/home/player/saves/") == "home_player_saves"


def test_backup_dir_name_uses_address_and_run_stamp(tmp_path: Path):
    path = backup_dir_for(Location(r"\\nas\saves"), str(tmp_path), _ctx())

    assert path == tmp_path / "nas_saves_20261019_083005"


def test_backup_copies_every_file_byte_identical(tmp_path: Path):
    src = tmp_path / "src"
    _populate(src)
    inventory = scan_files(src)
    archive = tmp_path / "archive"

    result = backup_inventory(inventory, Location(str(src)), str(archive), _ctx())

    assert result is not None
    assert result.copied == 3
    assert result.failed == 0
    copied = sorted(p for p in result.path.rglob("*") if p.is_file())
    assert len(copied) == len(inventory)
    for rel, record in inventory.items():
        assert (result.path / rel).read_bytes() == record.full_path.read_bytes()


def test_backup_dry_run_touches_nothing(tmp_path: Path):
    src = tmp_path / "src"
    _populate(src)
    archive = tmp_path / "archive"

    result = backup_inventory(scan_files(src), Location(str(src)), str(archive), _ctx(dry_run=True))

    assert result is not None
    assert result.path.parent == archive
    assert not archive.exists()


def test_backup_continues_after_single_copy_failure(tmp_path: Path):
    src = tmp_path / "src"
    _populate(src)
    inventory = scan_files(src)
    inventory["ghost.sav"] = FileRecord("ghost.sav", src / "ghost.sav", 0.0, 3)
    logs = []

    result = backup_inventory(
        inventory, Location(str(src)), str(tmp_path / "archive"), _ctx(log_func=lambda *a: logs.append(a))
    )

    assert result.copied == 3
    assert result.failed == 1
    assert any(entry[2] == "backup_copy_failed" for entry in logs)


def test_backup_dir_creation_failure_returns_none(tmp_path: Path):
    src = tmp_path / "src"
    _populate(src)
    blocker = tmp_path / "archive"
    blocker.write_text("file in the way", encoding="utf-8")

    assert backup_inventory(scan_files(src), Location(str(src)), str(blocker), _ctx()) is None


def test_empty_inventory_creates_no_directory(tmp_path: Path):
    archive = tmp_path / "archive"

    result = backup_inventory({}, Location(str(tmp_path / "src")), str(archive), _ctx())

    assert result.copied == 0
    assert not archive.exists()
