"""Tests for the recent-files store."""

import json
from pathlib import Path

import pytest

from snapedit import recent_files
from snapedit.models import OperationKind
from snapedit.recent_files import (
    RecentFile, clear_recent_files, load_recent_files, new_recent_file, save_recent_file,
)


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    monkeypatch.setattr(recent_files, "config_dir", lambda: tmp_path)
    return tmp_path


def _entry(n: int, operation: str = "original") -> RecentFile:
    return RecentFile(id=str(n), uri=f"/pics/{n}.png", name=f"{n}.png", timestamp=n, operation=operation)


def test_missing_file_is_empty():
    assert load_recent_files() == []


def test_new_recent_file():
    entry = new_recent_file(Path("/pics/cat.png"), OperationKind.CROP)
    assert entry.name == "cat.png"
    assert entry.uri == str(Path("/pics/cat.png"))
    assert entry.operation == "cropped"
    assert entry.id == str(entry.timestamp)


def test_newest_first_and_capped():
    for n in range(1, 8):
        save_recent_file(_entry(n))
    entries = load_recent_files()
    assert [e.id for e in entries] == ["7", "6", "5", "4", "3"]


def test_same_id_replaced():
    save_recent_file(_entry(1))
    save_recent_file(_entry(2))
    updated = save_recent_file(_entry(1, "converted"))
    assert [e.id for e in updated] == ["1", "2"]
    assert updated[0].operation == "converted"


def test_envelope_on_disk(isolated_config):
    save_recent_file(_entry(3))
    raw = json.loads((isolated_config / "recent_files.json").read_text(encoding="utf-8"))
    assert raw["version"] == 1
    assert raw["files"][0] == {"id": "3", "uri": "/pics/3.png", "name": "3.png",
                               "timestamp": 3, "operation": "original"}


def test_corrupt_file(isolated_config):
    (isolated_config / "recent_files.json").write_text("{not json", encoding="utf-8")
    assert load_recent_files() == []


def test_version_mismatch(isolated_config):
    (isolated_config / "recent_files.json").write_text(json.dumps({"version": 99, "files": []}))
    assert load_recent_files() == []


def test_malformed_entries_skipped(isolated_config):
    good = {"id": "1", "uri": "/a.png", "name": "a.png", "timestamp": 1, "operation": "original"}
    bad = [{"id": "2"}, "junk", dict(good, timestamp="yesterday")]
    (isolated_config / "recent_files.json").write_text(json.dumps({"version": 1, "files": bad + [good]}))
    assert [e.id for e in load_recent_files()] == ["1"]


def test_clear(isolated_config):
    save_recent_file(_entry(1))
    clear_recent_files()
    assert load_recent_files() == []
    clear_recent_files()
