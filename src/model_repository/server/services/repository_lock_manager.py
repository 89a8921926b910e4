"""
Per-repository locks serializing access to a shared working tree.

A checkout mutates the single working directory of a repository, so two
requests against the same path must never interleave. Each resolved path
gets its own threading.Lock; operations on different paths never contend.
"""

import logging
import os
import threading
from collections import defaultdict
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Union

logger = logging.getLogger(__name__)


class RepositoryBusyError(Exception):
    """Raised when a repository lock cannot be acquired before the timeout."""

    def __init__(self, path: str, timeout_seconds: float):
        super().__init__(
            f"Repository at {path} is busy (lock not acquired within {timeout_seconds}s)"
        )
        self.path = path
        self.timeout_seconds = timeout_seconds


class RepositoryLockManager:
    """
    Named intra-process locks keyed by normalized repository path.
    """

    def __init__(self, timeout_seconds: float = 120.0) -> None:
        """
        Initialize RepositoryLockManager.

        Args:
            timeout_seconds: Maximum seconds hold() waits for a busy repository
        """
        self.timeout_seconds = timeout_seconds

        # defaultdict so locks are created on first use without explicit initialisation
        self._locks: Dict[str, threading.Lock] = defaultdict(threading.Lock)
        self._guards_lock = threading.Lock()  # protects _locks dict

    @contextmanager
    def hold(self, path: Union[str, Path]) -> Iterator[None]:
        """
        Hold the lock for path for the duration of the with-block.

        Raises:
            RepositoryBusyError: If the lock is not acquired within timeout_seconds
        """
        key = self._key(path)
        lock = self._get_lock(key)

        if not lock.acquire(timeout=self.timeout_seconds):
            raise RepositoryBusyError(key, self.timeout_seconds)

        logger.debug(f"Repository lock acquired: {key}")
        try:
            yield
        finally:
            lock.release()
            logger.debug(f"Repository lock released: {key}")

    def is_locked(self, path: Union[str, Path]) -> bool:
        """Check whether the lock for path is currently held."""
        key = self._key(path)
        with self._guards_lock:
            lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def _key(self, path: Union[str, Path]) -> str:
        return os.path.normcase(os.path.abspath(str(path)))

    def _get_lock(self, key: str) -> threading.Lock:
        """Get or create the lock for key (thread-safe)."""
        with self._guards_lock:
            return self._locks[key]
