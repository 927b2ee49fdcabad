"""
Per-account locking.

Check, mutate and persist of a balance run under an exclusive lock for that
account. Operations touching several accounts acquire the locks in ascending
id order, so two transfers in opposite directions cannot deadlock.

A lock lives only while some caller holds or waits for it; the registry is
empty whenever no operation is in flight.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator, List


class _LockEntry:
    """Lock plus the number of callers holding or waiting for it"""

    __slots__ = ('lock', 'users')

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


class AccountLocks:
    """Registry of one lock per in-use account id"""

    def __init__(self):
        self._locks: Dict[Hashable, _LockEntry] = {}
        self._registry_lock = threading.Lock()

    def _checkout(self, account_id: Hashable) -> threading.Lock:
        with self._registry_lock:
            entry = self._locks.get(account_id)
            if entry is None:
                entry = self._locks[account_id] = _LockEntry()
            entry.users += 1
            return entry.lock

    def _checkin(self, account_id: Hashable) -> None:
        with self._registry_lock:
            entry = self._locks[account_id]
            entry.users -= 1
            if entry.users == 0:
                del self._locks[account_id]

    @contextmanager
    def hold(self, *account_ids: Hashable) -> Iterator[None]:
        """Hold the locks of all distinct account_ids for the duration of the block"""
        ordered = sorted(set(account_ids))
        checked_out: List[Hashable] = []
        acquired: List[threading.Lock] = []
        try:
            for account_id in ordered:
                lock = self._checkout(account_id)
                checked_out.append(account_id)
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            for account_id in reversed(checked_out):
                self._checkin(account_id)
