import os

os.environ.setdefault("APP_ENV", "testing")

import threading
from typing import List, Tuple

import pytest

from locking import AccountLockRegistry, reset_lock_registry
from notifications import NotificationDispatcher, NotificationService, shutdown_notification_dispatcher
from repositories import InMemoryAccountRepository, reset_repositories


class RecordingNotificationService(NotificationService):
    """Collects delivered messages instead of sending them."""

    def __init__(self):
        self.messages: List[Tuple[str, str]] = []
        self._lock = threading.Lock()

    def notify_about_transfer(self, account, message):
        with self._lock:
            self.messages.append((account.accountId, message))


class FailingNotificationService(NotificationService):
    def notify_about_transfer(self, account, message):
        raise RuntimeError("SMTP server unavailable")


@pytest.fixture(autouse=True)
def reset_state():
    """Reset shared singletons before each test."""
    reset_repositories()
    reset_lock_registry()
    yield
    shutdown_notification_dispatcher()


@pytest.fixture
def repo():
    return InMemoryAccountRepository()


@pytest.fixture
def lock_registry():
    return AccountLockRegistry()


@pytest.fixture
def notifier():
    return RecordingNotificationService()


@pytest.fixture
def dispatcher(notifier):
    dispatcher = NotificationDispatcher(notifier, max_workers=4)
    yield dispatcher
    dispatcher.shutdown(wait=True)
