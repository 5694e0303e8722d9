"""
Mutual exclusion for lending operations.

Each write operation holds the locks for the keys it reads and then writes
for the whole unit of work: its item, for issues also its member, and the
ledger whenever it may append a transaction. Keys are acquired in sorted
order so two operations can never wait on each other in a cycle.

When every database session shares one connection, units of work cannot be
isolated from each other at the database level, so all operations, reads
included, share a single lock instead.
"""

import threading
from collections.abc import Generator, Hashable
from contextlib import ExitStack, contextmanager


class KeyedLocks:
    """Registry of lazily created locks, one per key."""

    def __init__(self, shared: bool = False):
        self.shared = shared
        self._guard = threading.Lock()
        self._global = threading.Lock()
        # One lock per member, item or ledger key ever held; never pruned, so
        # bounded by catalog plus membership size.
        self._locks: dict[Hashable, threading.Lock] = {}

    def _lock_for(self, key: Hashable) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, *keys: Hashable) -> Generator[None, None, None]:
        """
        Hold the locks for ``keys`` until the block exits.

        With no keys this only serialises against other operations in shared
        mode, which is what read-only queries need.
        """
        if self.shared:
            with self._global:
                yield
            return

        with ExitStack() as stack:
            for key in sorted(set(keys), key=repr):
                stack.enter_context(self._lock_for(key))
            yield
