"""Per-handle mutual exclusion."""

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class HandleLocks:
    """Registry of locks keyed by handle.

    A lock exists only while at least one caller holds or waits for it, so
    the registry does not grow with the number of handles ever seen.
    Different handles never contend with each other.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._users: dict[str, int] = {}

    @contextmanager
    def hold(self, handle: str) -> Iterator[None]:
        """Hold the critical section for ``handle``."""
        with self._guard:
            lock = self._locks.get(handle)
            if lock is None:
                lock = self._locks[handle] = threading.Lock()
            self._users[handle] = self._users.get(handle, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._users[handle] -= 1
                if self._users[handle] == 0:
                    del self._users[handle]
                    del self._locks[handle]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
