"""
In-memory record store for recent group messages.

Records are kept per group, then per user, in insertion order. Each user's
history is an immutable tuple that is replaced on every change, so a lookup
returns a snapshot no later append or sweep can alter.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Optional

from floodguard.core.models import EventRecord
from floodguard.utils.logging import get_logger

logger = get_logger(__name__)

History = tuple[EventRecord, ...]


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class StoreStats:
    """Size of the store, reported by the admin API."""
    groups: int
    users: int
    records: int


class RecordStore:
    """
    Bounded history of recent messages keyed by (group, user).

    Group and user entries are created on first append and removed by
    ``sweep`` once they hold no records. The lock only covers swapping
    references in the nested dicts, never any per-record work.
    """

    def __init__(self, key_stripes: int = 64) -> None:
        self._groups: dict[str, dict[str, History]] = {}
        self._lock = threading.Lock()
        self._key_locks = [threading.Lock() for _ in range(max(1, key_stripes))]

    def key_lock(self, group_id: str, user_id: str) -> threading.Lock:
        """
        Lock serializing read-classify-append for one (group, user).

        Locks are striped, so unrelated keys rarely share one.
        """
        return self._key_locks[hash((group_id, user_id)) % len(self._key_locks)]

    def append(self, record: EventRecord) -> None:
        with self._lock:
            users = self._groups.setdefault(record.group_id, {})
            users[record.user_id] = users.get(record.user_id, ()) + (record,)

    def lookup(self, group_id: str, user_id: str) -> History:
        """
        Get the history for one user in one group.

        Returns:
            tuple: Records in insertion order, empty if none are stored
        """
        with self._lock:
            users = self._groups.get(group_id)
            if users is None:
                return ()
            return users.get(user_id, ())

    def sweep(self, max_age_ms: int, now: Optional[int] = None) -> int:
        """
        Discard records older than ``max_age_ms``.

        A record is expired when ``now - timestamp >= max_age_ms``. Users and
        groups left empty are removed. The lock is taken once per group, so
        appends and lookups for other groups interleave with a long sweep.

        Returns:
            int: Number of records removed
        """
        if now is None:
            now = now_ms()

        with self._lock:
            group_ids = list(self._groups)

        removed = 0
        for group_id in group_ids:
            with self._lock:
                users = self._groups.get(group_id)
                if users is None:
                    continue
                for user_id in list(users):
                    history = users[user_id]
                    kept = tuple(r for r in history if now - r.timestamp < max_age_ms)
                    if len(kept) == len(history):
                        continue
                    removed += len(history) - len(kept)
                    if kept:
                        users[user_id] = kept
                    else:
                        del users[user_id]
                if not users:
                    del self._groups[group_id]

        if removed:
            logger.debug("Swept %d expired records", removed)
        return removed

    def group_users(self, group_id: str) -> list[str]:
        with self._lock:
            return list(self._groups.get(group_id, {}))

    def stats(self) -> StoreStats:
        with self._lock:
            users = sum(len(u) for u in self._groups.values())
            records = sum(len(h) for u in self._groups.values() for h in u.values())
            return StoreStats(groups=len(self._groups), users=users, records=records)

    def clear(self) -> None:
        with self._lock:
            self._groups.clear()
