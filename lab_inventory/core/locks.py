"""
In-process mutual exclusion keyed by an arbitrary hashable (an item id).

Calls holding different keys never contend; calls holding the same key
run one at a time. A lock exists only while some caller holds or waits
for it, so the registry does not grow with the number of keys seen.
"""

import threading
from contextlib import contextmanager
from typing import Hashable, Iterator


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class KeyedLocks:
    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: dict[Hashable, _Entry] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.users += 1

        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._entries[key]

    def __len__(self) -> int:
        """Number of keys currently held or waited on."""
        with self._guard:
            return len(self._entries)


# Shared by every consume() in this process.
item_locks = KeyedLocks()
