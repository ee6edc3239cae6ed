"""
Per-object serialization of reconciliation passes

kopf runs event handlers and timers for the same object as independent
tasks; sync handlers then land on a thread pool. Finalizer add/remove is not
safe under concurrent passes on one object, so every pass takes the lock for
its (plural, namespace, name) key first.
"""
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Tuple

Key = Tuple[str, str, str]


class KeyedLock:
    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Key, threading.Lock] = {}
        self._users: Dict[Key, int] = {}

    @contextmanager
    def hold(self, key: Key) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._users[key] = self._users.get(key, 0) + 1
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._users[key] -= 1
                if not self._users[key]:
                    # drop idle entries so deleted objects do not accumulate
                    del self._users[key]
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
