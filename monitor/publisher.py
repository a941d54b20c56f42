"""
Single-slot store for the current Snapshot.

The refresh loop builds each Snapshot privately and hands it over with
`publish`; readers call `current_snapshot`.  Only the reference swap happens
under the lock, so readers see either the previous complete Snapshot or the
new one, never a partly built value, and never wait on cluster I/O.
"""
from __future__ import annotations

import threading
from typing import Optional, Tuple

from monitor.state import Snapshot


class StatusPublisher:
    """Versioned, lock-guarded pointer to an immutable Snapshot."""

    def __init__(self, initial: Optional[Snapshot] = None) -> None:
        self._lock = threading.Lock()
        self._snapshot = initial if initial is not None else Snapshot.empty()
        self._version = 0

    def publish(self, snapshot: Snapshot) -> int:
        """Install *snapshot* as current and return its version number."""
        if not isinstance(snapshot, Snapshot):
            raise TypeError(f"expected Snapshot, got {type(snapshot).__name__}")
        with self._lock:
            self._snapshot = snapshot
            self._version += 1
            return self._version

    def current_snapshot(self) -> Snapshot:
        with self._lock:
            return self._snapshot

    def versioned(self) -> Tuple[int, Snapshot]:
        """Return (version, snapshot) read together; version 0 is the initial empty one."""
        with self._lock:
            return self._version, self._snapshot
