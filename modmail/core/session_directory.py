"""Session directory - bidirectional correspondent <-> thread map.

Both maps are mutated together under a single lock so that a reader never
sees one without the other. The lock only guards in-memory work; callers
capture the result and perform network calls after releasing it.
"""

from __future__ import annotations

import asyncio
from typing import Iterable

from modmail.logging_config import get_logger

logger = get_logger(__name__)


class SessionDirectory:
    """In-memory registry of open modmail sessions.

    A session is the pair ``correspondent -> thread`` plus its inverse
    ``thread -> correspondent``. The two maps are always exact inverses.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._thread_by_correspondent: dict[int, int] = {}
        self._correspondent_by_thread: dict[int, int] = {}

    async def lookup_thread(self, correspondent_id: int) -> int | None:
        async with self._lock:
            return self._thread_by_correspondent.get(correspondent_id)

    async def lookup_correspondent(self, thread_id: int) -> int | None:
        async with self._lock:
            return self._correspondent_by_thread.get(thread_id)

    async def insert(self, correspondent_id: int, thread_id: int) -> None:
        """Establish a session pair, dropping any pair either key belonged to."""
        async with self._lock:
            self._link(self._thread_by_correspondent, self._correspondent_by_thread, correspondent_id, thread_id)
        logger.debug("Session directory: correspondent %s -> thread %s", correspondent_id, thread_id)

    async def remove_by_thread(self, thread_id: int) -> int | None:
        """Remove the pair owning ``thread_id``.

        Returns:
            The correspondent id that owned the thread, or None if untracked
        """
        async with self._lock:
            correspondent_id = self._correspondent_by_thread.pop(thread_id, None)
            if correspondent_id is not None:
                self._thread_by_correspondent.pop(correspondent_id, None)
        return correspondent_id

    async def replace_all(self, pairs: Iterable[tuple[int, int]]) -> None:
        """Atomically swap the whole directory for a freshly computed set of pairs.

        Later pairs win over earlier ones sharing a correspondent or thread.
        """
        thread_by_correspondent: dict[int, int] = {}
        correspondent_by_thread: dict[int, int] = {}
        for correspondent_id, thread_id in pairs:
            self._link(thread_by_correspondent, correspondent_by_thread, correspondent_id, thread_id)

        async with self._lock:
            self._thread_by_correspondent = thread_by_correspondent
            self._correspondent_by_thread = correspondent_by_thread
        logger.info("Session directory replaced: %d active sessions", len(thread_by_correspondent))

    async def snapshot(self) -> dict[int, int]:
        """Copy of the correspondent -> thread map."""
        async with self._lock:
            return dict(self._thread_by_correspondent)

    async def count(self) -> int:
        async with self._lock:
            return len(self._thread_by_correspondent)

    @staticmethod
    def _link(
        thread_by_correspondent: dict[int, int],
        correspondent_by_thread: dict[int, int],
        correspondent_id: int,
        thread_id: int,
    ) -> None:
        previous_thread = thread_by_correspondent.pop(correspondent_id, None)
        if previous_thread is not None:
            correspondent_by_thread.pop(previous_thread, None)
        previous_correspondent = correspondent_by_thread.pop(thread_id, None)
        if previous_correspondent is not None:
            thread_by_correspondent.pop(previous_correspondent, None)
        thread_by_correspondent[correspondent_id] = thread_id
        correspondent_by_thread[thread_id] = correspondent_id
