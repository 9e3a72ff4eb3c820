"""
Per-address locking for nonce-dependent submissions.
"""
import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator

logger = logging.getLogger(__name__)


class AddressNonceLock:
    """
    One lock per sender address, created lazily and kept for the process
    lifetime.

    Holding the lock for an address brackets the read-nonce-then-submit
    sequence so two concurrent submissions from the same address never
    observe the same pending nonce. Different addresses never contend.
    """

    def __init__(self):
        self._table_lock = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    @staticmethod
    def _key(address: str) -> str:
        return address.lower()

    def lock_for(self, address: str) -> threading.Lock:
        """Return the lock for ``address``, creating it on first use."""
        key = self._key(address)
        with self._table_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def acquire(self, address: str) -> Iterator[None]:
        lock = self.lock_for(address)
        lock.acquire()
        try:
            yield
        finally:
            lock.release()

    def __len__(self) -> int:
        with self._table_lock:
            return len(self._locks)
