"""
Persistent volume state store for local-btrfs.

Maps volume names to their mountpoint root and mirrors the map to a JSON
file of the form ``{"state": {name: root}}``. Snapshots are not recorded
here; they are read back from the filesystem on every query.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional

from local_btrfs.exceptions import PersistenceWarning

logger = logging.getLogger(__name__)

STATE_DIR_MODE = 0o700
STATE_FILE_MODE = 0o600


def _load_json(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    with open(path, "r", encoding="utf-8") as file:
        return json.load(file)


def _atomic_write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(mode=STATE_DIR_MODE, parents=True, exist_ok=True)
    tmp_fd, tmp_path = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        os.fchmod(tmp_fd, STATE_FILE_MODE)
        with os.fdopen(tmp_fd, "w", encoding="utf-8") as file:
            json.dump(data, file, indent=2, ensure_ascii=False, sort_keys=True)
            file.write("\n")
        os.replace(tmp_path, path)
    finally:
        try:
            os.unlink(tmp_path)
        except FileNotFoundError:
            pass


class _VolumeLock:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class VolumeStateStore:
    """
    In-memory volume map guarded by one exclusive lock.

    Reads and writes of the map both take the lock. The state file is
    rewritten in full after every mutation while the lock is held.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._volumes: Dict[str, str] = {}
        self._lock = threading.Lock()
        self._volume_locks: Dict[str, _VolumeLock] = {}
        self._volume_locks_guard = threading.Lock()

    def load(self) -> int:
        """
        Read the state file into memory.

        A missing or unreadable file leaves the store empty.

        Returns:
            Number of volumes loaded
        """
        try:
            data = _load_json(self.path, {"state": {}})
        except (OSError, ValueError) as e:
            logger.warning("Could not read state file %s, starting empty: %s", self.path, e)
            data = {}

        state = data.get("state") if isinstance(data, dict) else None
        if not isinstance(state, dict):
            state = {}

        with self._lock:
            self._volumes = {str(name): str(root) for name, root in state.items() if root}
            return len(self._volumes)

    def mutate(self, fn: Callable[[Dict[str, str]], None]) -> Optional[PersistenceWarning]:
        """
        Apply fn to the volume map and persist the result.

        Exceptions raised by fn propagate and nothing is written. A failed
        write keeps the in-memory change.

        Returns:
            PersistenceWarning if the state file could not be written, else None
        """
        with self._lock:
            fn(self._volumes)
            try:
                _atomic_write_json(self.path, {"state": dict(self._volumes)})
            except (OSError, TypeError, ValueError) as e:
                warning = PersistenceWarning(f"Could not save state to {self.path}: {e}")
                logger.warning("%s", warning.message)
                return warning
        return None

    def get(self, name: str) -> Optional[str]:
        """Return the mountpoint root of a volume, or None if untracked."""
        with self._lock:
            return self._volumes.get(name) or None

    def list(self) -> Dict[str, str]:
        """Return a copy of the volume map."""
        with self._lock:
            return dict(self._volumes)

    @contextlib.contextmanager
    def volume_lock(self, name: str) -> Iterator[None]:
        """
        Serialize filesystem work on one volume.

        Held around subvolume operations, never together with the map lock
        for longer than a map access. The lock is dropped from the registry
        once no caller holds or waits for it.
        """
        with self._volume_locks_guard:
            entry = self._volume_locks.get(name)
            if entry is None:
                entry = self._volume_locks[name] = _VolumeLock()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._volume_locks_guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._volume_locks[name]

    def locked_volumes(self) -> List[str]:
        """Return names with a volume lock currently held or awaited."""
        with self._volume_locks_guard:
            return sorted(self._volume_locks)
