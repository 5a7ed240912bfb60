from __future__ import annotations

"""
Crash-safe JSON snapshots of the DAO state.

Adds:
- Atomic write (temp file + fsync + rename + directory fsync)
- Rolling backups (.bak1, .bak2, ...) rotated before each save
- A ``state_hash`` stamped on every snapshot and checked on load, so a
  truncated or hand-edited primary falls back to the newest intact backup
- A journal marker present only while a save is in flight
- An append-only event file (one canonical JSON record per line) next to
  the snapshot; the snapshot records how many of its lines it covers

Integers are stored as JSON numbers; Python's json module keeps them exact,
so 18-decimal base-unit amounts round-trip without loss.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .audit import canonical_json_bytes, state_hash

log = logging.getLogger(__name__)

JsonDict = Dict[str, Any]
PathLike = Union[str, Path]


def _fsync_dir(dir_path: Path) -> None:
    try:
        fd = os.open(str(dir_path), os.O_DIRECTORY)
    except OSError:
        # Not supported on every platform (e.g. Windows).
        return
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def atomic_write_bytes(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=path.name + ".", suffix=".tmp", dir=str(path.parent))
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())

        os.replace(str(tmp_path), str(path))
        _fsync_dir(path.parent)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()


def read_snapshot(path: Path) -> Optional[JsonDict]:
    """Read one snapshot file; None if missing, unparsable or failing its hash."""
    if not path.exists():
        return None
    try:
        obj = json.loads(path.read_bytes().decode("utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        log.warning("snapshot %s unreadable: %s", path, e)
        return None
    if not isinstance(obj, dict):
        return None
    stamped = obj.get("state_hash")
    if stamped and stamped != state_hash(obj):
        log.warning("snapshot %s failed hash check", path)
        return None
    return obj


class StateStore:
    def __init__(
        self,
        data_dir: PathLike = ".",
        *,
        filename: str = "dao_state.json",
        keep_backups: int = 2,
    ) -> None:
        self.data_dir = Path(data_dir)
        self.filename = filename
        self.keep_backups = int(keep_backups)

    @property
    def path(self) -> Path:
        return self.data_dir / self.filename

    @property
    def journal_path(self) -> Path:
        return self.path.with_suffix(self.path.suffix + ".journal")

    def backup_path(self, i: int) -> Path:
        return self.path.with_suffix(self.path.suffix + f".bak{i}")

    def candidates(self) -> List[Path]:
        return [self.path] + [self.backup_path(i) for i in range(1, max(1, self.keep_backups) + 1)]

    @property
    def events_path(self) -> Path:
        return self.path.with_suffix(".events.jsonl")

    def exists(self) -> bool:
        return self.events_path.exists() or any(p.exists() for p in self.candidates())

    def interrupted(self) -> bool:
        return self.journal_path.exists()

    # ---------------------------
    # Load: primary -> backups
    # ---------------------------
    def load(self) -> Optional[JsonDict]:
        if self.interrupted():
            log.warning("previous save of %s did not complete; checking backups", self.path)
        for p in self.candidates():
            obj = read_snapshot(p)
            if obj is not None:
                if p != self.path:
                    log.warning("recovered DAO state from %s", p)
                return obj
        return None

    # ---------------------------
    # Save: journal + rotate backups + atomic write + clear journal
    # ---------------------------
    def _rotate_backups(self) -> None:
        if self.keep_backups <= 0:
            return
        for i in range(self.keep_backups, 1, -1):
            src = self.backup_path(i - 1)
            if src.exists():
                os.replace(str(src), str(self.backup_path(i)))
        if self.path.exists():
            os.replace(str(self.path), str(self.backup_path(1)))

    def save(self, state: JsonDict) -> str:
        snapshot = dict(state)
        digest = state_hash(snapshot)
        snapshot["state_hash"] = digest

        atomic_write_bytes(self.journal_path, b"1")
        self._rotate_backups()
        atomic_write_bytes(self.path, canonical_json_bytes(snapshot))
        self.journal_path.unlink()
        return digest

    # ---------------------------
    # Event file: append-only, cut back to the snapshot on load
    # ---------------------------
    def append_events(self, records: List[JsonDict]) -> None:
        if not records:
            return
        self.events_path.parent.mkdir(parents=True, exist_ok=True)
        data = b"".join(canonical_json_bytes(r) + b"\n" for r in records)
        with open(self.events_path, "ab") as f:
            start = f.tell()
            try:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            except OSError:
                # Drop a partial append so the next save can write these records again.
                f.truncate(start)
                raise

    def read_events(self, count: int) -> List[JsonDict]:
        """
        The first ``count`` event records. Lines past ``count`` were appended
        by a save whose snapshot never landed; they are cut off the file.
        """
        lines = self.events_path.read_bytes().splitlines() if self.events_path.exists() else []
        if len(lines) < count:
            raise ValueError(f"{self.events_path} holds {len(lines)} events; snapshot expects {count}")
        records = [json.loads(line.decode("utf-8")) for line in lines[:count]]
        if len(lines) > count:
            log.warning("%s runs %d events ahead of the snapshot; cutting back", self.events_path, len(lines) - count)
            atomic_write_bytes(self.events_path, b"".join(line + b"\n" for line in lines[:count]))
        return records
