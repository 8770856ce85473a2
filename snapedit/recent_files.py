"""
Recent-files store: the short list of images the user opened or exported.

The editing core never reads or writes this list; the editor window records
an entry when it opens an image and when it exports one, supplying the
operation kind and the file it refers to.

The on-disk format uses a versioned envelope::

    {
        "version": 1,
        "files": [
            {
                "id": "1760881234567",
                "uri": "/home/me/Pictures/cat.png",
                "name": "cat.png",
                "timestamp": 1760881234567,
                "operation": "original"
            }
        ]
    }

Newest first, at most ``RECENT_FILES_MAX`` entries.  This module is Qt-free.
"""

import json
import logging
import time
from dataclasses import asdict, dataclass
from pathlib import Path

from snapedit.config import RECENT_FILES_MAX, config_dir
from snapedit.models import OperationKind

logger = logging.getLogger(__name__)

_RECENT_FILENAME = "recent_files.json"
_RECENT_VERSION = 1


@dataclass(frozen=True)
class RecentFile:
    id: str
    uri: str
    name: str
    timestamp: int  # epoch milliseconds
    operation: str


def new_recent_file(path: Path, operation: OperationKind) -> RecentFile:
    """Build an entry for *path* stamped with the current time."""
    now_ms = int(time.time() * 1000)
    path = Path(path)
    return RecentFile(
        id=f"{now_ms}",
        uri=str(path),
        name=path.name,
        timestamp=now_ms,
        operation=operation.label,
    )


def _recent_path() -> Path:
    return config_dir() / _RECENT_FILENAME


# =============================================================================
# Serialization helpers
# =============================================================================
def _dict_to_entry(data) -> RecentFile | None:
    """Deserialize one entry, or None if it is malformed."""
    if not isinstance(data, dict):
        return None
    try:
        entry = RecentFile(
            id=data["id"],
            uri=data["uri"],
            name=data["name"],
            timestamp=data["timestamp"],
            operation=data["operation"],
        )
    except KeyError:
        return None
    if not all(isinstance(v, str) for v in (entry.id, entry.uri, entry.name, entry.operation)):
        return None
    if isinstance(entry.timestamp, bool) or not isinstance(entry.timestamp, int):
        return None
    return entry


# =============================================================================
# Load / Save
# =============================================================================
def load_recent_files() -> list[RecentFile]:
    """
    Load the recent-files list from disk.

    Returns an empty list if the file is missing, corrupt, or has an
    unexpected version.  Malformed entries are skipped.
    """
    path = _recent_path()

    if not path.exists():
        logger.debug("No recent files at %s — starting fresh", path)
        return []

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Failed to read recent files (%s) — starting fresh", exc)
        return []

    if not isinstance(raw, dict) or raw.get("version") != _RECENT_VERSION:
        logger.warning("Recent files version mismatch or invalid format — starting fresh")
        return []

    files = raw.get("files")
    if not isinstance(files, list):
        logger.warning("Recent files missing 'files' list — starting fresh")
        return []

    entries = [e for e in (_dict_to_entry(d) for d in files) if e is not None]
    return entries[:RECENT_FILES_MAX]


def _write(entries: list[RecentFile]) -> None:
    envelope = {"version": _RECENT_VERSION, "files": [asdict(e) for e in entries]}
    path = _recent_path()
    path.write_text(json.dumps(envelope, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.debug("Saved %d recent file(s) to %s", len(entries), path)


def save_recent_file(entry: RecentFile) -> list[RecentFile]:
    """
    Put *entry* at the front of the list and persist it.

    An existing entry with the same id is replaced; the list is trimmed to
    ``RECENT_FILES_MAX``.  Returns the updated list.  Raises ``OSError`` if
    the file cannot be written.
    """
    existing = [e for e in load_recent_files() if e.id != entry.id]
    updated = ([entry] + existing)[:RECENT_FILES_MAX]
    _write(updated)
    return updated


def clear_recent_files() -> None:
    """Forget every recent file."""
    path = _recent_path()
    try:
        path.unlink()
    except FileNotFoundError:
        return
    logger.info("Cleared recent files at %s", path)
