"""
In-process locks keyed by client phone.

The inbound worker and operator quote sends both take ``phone_locks`` for a
phone before touching its pending authorization, so a reply is never applied
halfway through a new quote being sent to the same number. The database row
lock on the pending authorization covers other processes.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class KeyedLock:
    """One lock per key, dropped when nobody holds or waits for it."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, list] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            slot = self._locks.setdefault(key, [threading.Lock(), 0])
            slot[1] += 1
        slot[0].acquire()
        try:
            yield
        finally:
            slot[0].release()
            with self._guard:
                slot[1] -= 1
                if slot[1] == 0:
                    del self._locks[key]


phone_locks = KeyedLock()
