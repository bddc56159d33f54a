"""Per-account mutexes shared by every transfer in the process."""
from typing import ContextManager, Dict
import threading


class AccountLockRegistry:
    """Hands out one lock per account id, creating it on first request.

    The registry never releases anything itself; callers acquire and release
    the returned lock. Entries live for the lifetime of the registry.
    """

    def __init__(self):
        self._locks: Dict[str, ContextManager] = {}
        self._guard = threading.Lock()

    def lock_for(self, account_id: str) -> ContextManager:
        lock = self._locks.get(account_id)
        if lock is None:
            with self._guard:
                lock = self._locks.setdefault(account_id, threading.RLock())
        return lock

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


_lock_registry = AccountLockRegistry()


def get_lock_registry() -> AccountLockRegistry:
    return _lock_registry


def reset_lock_registry():
    """Drop all registered locks (for testing only)."""
    global _lock_registry
    _lock_registry = AccountLockRegistry()
