import os
from pathlib import Path

import pytest

from savesync.engine.context import RunContext
from savesync.engine.inventory import scan_files
from savesync.engine.models import REASON_TARGET_MISSING, REASON_TARGET_STALE, Location
from savesync.engine.planner import build_plan, plan_actions

T0 = 1_700_000_000


def _write(root: Path, rel: str, content: bytes, mtime: float) -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    os.utime(path, (mtime, mtime))
    return path


def _setup(tmp_path: Path, names: list[str]):
    locations = []
    for name in names:
        (tmp_path / name).mkdir(exist_ok=True)
        loc = Location(str(tmp_path / name))
        loc.exists = True
        locations.append(loc)
    return locations


def _inventories(locations):
    return [scan_files(loc.root, idx) for idx, loc in enumerate(locations)]


def test_missing_file_is_copied_to_empty_location(tmp_path: Path):
    a, b = _setup(tmp_path, ["a", "b"])
    _write(a.root, "save.dat", b"x" * 100, T0)

    actions = plan_actions(_inventories([a, b]), [a, b], RunContext())

    assert len(actions) == 1
    assert actions[0].source == a.root / "save.dat"
    assert actions[0].target == b.root / "save.dat"
    assert actions[0].reason == REASON_TARGET_MISSING


def test_newer_conflicting_copy_overwrites_stale_one(tmp_path: Path):
    a, b = _setup(tmp_path, ["a", "b"])
    _write(a.root, "save.dat", b"old progress", T0)
    _write(b.root, "save.dat", b"new progress!", T0 + 60)

    actions = plan_actions(_inventories([a, b]), [a, b], RunContext(policy="newest"))

    assert len(actions) == 1
    assert actions[0].source == b.root / "save.dat"
    assert actions[0].target == a.root / "save.dat"
    assert actions[0].reason == REASON_TARGET_STALE


@pytest.mark.parametrize("policy", ["newest", "largest", "manual", "bogus"])
def test_identical_content_needs_no_action(tmp_path: Path, policy: str):
    a, b = _setup(tmp_path, ["a", "b"])
    _write(a.root, "save.dat", b"same bytes", T0)
    _write(b.root, "save.dat", b"same bytes", T0 + 3600)

    plan = build_plan(_inventories([a, b]), [a, b], RunContext(policy=policy))

    assert plan.actions == []
    assert plan.conflicts == 0


def test_location_already_holding_winner_content_is_left_alone(tmp_path: Path):
    a, b, c = _setup(tmp_path, ["a", "b", "c"])
    _write(a.root, "save.dat", b"new", T0 + 100)
    _write(b.root, "save.dat", b"new", T0 + 50)
    _write(c.root, "save.dat", b"older", T0)

    plan = build_plan(_inventories([a, b, c]), [a, b, c], RunContext())

    assert [(x.target, x.reason) for x in plan.actions] == [(c.root / "save.dat", REASON_TARGET_STALE)]
    assert plan.conflicts == 1


def test_manual_skip_excludes_path(tmp_path: Path):
    a, b = _setup(tmp_path, ["a", "b"])
    _write(a.root, "save.dat", b"one", T0)
    _write(b.root, "save.dat", b"two!", T0 + 1)
    _write(a.root, "other.sav", b"only here", T0)

    plan = build_plan(_inventories([a, b]), [a, b], RunContext(policy="manual"), chooser=lambda x, y: "skip")

    assert plan.skipped == ["save.dat"]
    assert [x.rel_path for x in plan.actions] == ["other.sav"]


def test_nested_paths_target_matching_subdirectories(tmp_path: Path):
    a, b = _setup(tmp_path, ["a", "b"])
    _write(a.root, "psx/memcards/card1.mcr", b"card", T0)

    actions = plan_actions(_inventories([a, b]), [a, b], RunContext())

    assert actions[0].target == b.root / "psx" / "memcards" / "card1.mcr"
    assert actions[0].target_index == 1


def test_plan_is_deterministic(tmp_path: Path):
    a, b, c = _setup(tmp_path, ["a", "b", "c"])
    _write(a.root, "x.sav", b"a1", T0)
    _write(b.root, "x.sav", b"b22", T0)
    _write(c.root, "y.sav", b"c", T0)
    _write(b.root, "z/z.sav", b"z", T0)

    first = plan_actions(_inventories([a, b, c]), [a, b, c], RunContext())
    second = plan_actions(_inventories([a, b, c]), [a, b, c], RunContext())

    assert first == second
    # Equal mtimes keep the first location's copy.
    stale = [x for x in first if x.rel_path == "x.sav"]
    assert [(x.source, x.target) for x in stale] == [
        (a.root / "x.sav", b.root / "x.sav"),
        (a.root / "x.sav", c.root / "x.sav"),
    ]


def test_mismatched_inputs_raise(tmp_path: Path):
    (a,) = _setup(tmp_path, ["a"])

    with pytest.raises(ValueError):
        build_plan([{}, {}], [a], RunContext())
