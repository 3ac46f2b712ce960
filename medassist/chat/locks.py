# medassist/chat/locks.py
from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List


class ConversationLocks:
    """
    One mutex per conversation id, created on demand and dropped once
    nobody holds or waits for it.

    Only serializes turns inside this process; several workers against
    the same database can still interleave.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        # conversation id -> [lock, number of holders + waiters]
        self._entries: Dict[str, List] = {}

    @contextmanager
    def hold(self, conversation_id: str) -> Iterator[None]:
        with self._guard:
            entry = self._entries.get(conversation_id)
            if entry is None:
                entry = [threading.Lock(), 0]
                self._entries[conversation_id] = entry
            entry[1] += 1

        lock = entry[0]
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    self._entries.pop(conversation_id, None)

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)
