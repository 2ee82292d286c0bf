from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, List


@dataclass
class SessionLockRegistry:
    """Per-session mutual exclusion for accrual passes, tag changes and checkout.

    A session's lock lives only while some caller holds or waits on it, so
    the registry does not grow with the number of sessions ever touched.
    Only serializes work inside one process.
    """

    _locks: Dict[str, List] = field(default_factory=dict)  # session id -> [lock, users]
    _guard: threading.Lock = field(default_factory=threading.Lock)

    @contextmanager
    def hold(self, session_id: str) -> Iterator[None]:
        with self._guard:
            slot = self._locks.setdefault(session_id, [threading.Lock(), 0])
            slot[1] += 1
        try:
            with slot[0]:
                yield
        finally:
            with self._guard:
                slot[1] -= 1
                if slot[1] == 0:
                    del self._locks[session_id]

    def is_held(self, session_id: str) -> bool:
        with self._guard:
            slot = self._locks.get(session_id)
            return slot is not None and slot[0].locked()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


session_locks = SessionLockRegistry()
