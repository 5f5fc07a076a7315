from __future__ import annotations

from contextlib import contextmanager
from threading import Lock, RLock
from typing import Dict, Iterator


class MemberLocks:
    """
    One re-entrant lock per member id, created on first use and dropped once
    nobody holds or waits on it. Renewal holds it while the billing ledger
    takes it again for the balance write, hence RLock.
    """

    def __init__(self) -> None:
        self._guard = Lock()
        self._locks: Dict[str, RLock] = {}
        self._users: Dict[str, int] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _acquire_ref(self, key: str) -> RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = RLock()
                self._locks[key] = lock
            self._users[key] = self._users.get(key, 0) + 1
            return lock

    def _release_ref(self, key: str) -> None:
        with self._guard:
            remaining = self._users[key] - 1
            if remaining:
                self._users[key] = remaining
            else:
                del self._users[key]
                del self._locks[key]

    @contextmanager
    def hold(self, member_id: str) -> Iterator[None]:
        key = str(member_id)
        lock = self._acquire_ref(key)
        try:
            with lock:
                yield
        finally:
            self._release_ref(key)


# Shared by every service instance in the process; routes build services per request.
member_locks = MemberLocks()
