"""Per-position locks serializing read-modify-write cycles on one position."""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List


class PositionLockRegistry:
    """
    Hands out one lock per position id, created on first use.

    An entry lives only while some thread holds or waits on it, so the
    registry does not grow with every position ever touched.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._users: Dict[str, int] = {}

    def _checkout(self, position_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(position_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[position_id] = lock
            self._users[position_id] = self._users.get(position_id, 0) + 1
            return lock

    def _checkin(self, position_id: str) -> None:
        with self._guard:
            self._users[position_id] -= 1
            if self._users[position_id] == 0:
                del self._users[position_id]
                del self._locks[position_id]

    def active_ids(self) -> List[str]:
        """Ids currently held or waited on."""
        with self._guard:
            return sorted(self._locks)

    @contextmanager
    def hold(self, *position_ids: str) -> Iterator[None]:
        """Hold the locks of every given position, acquired in sorted id order."""
        ordered = sorted(set(position_ids))
        checked_out = []
        acquired = []
        try:
            for position_id in ordered:
                lock = self._checkout(position_id)
                checked_out.append(position_id)
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            for position_id in checked_out:
                self._checkin(position_id)
