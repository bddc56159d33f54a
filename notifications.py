from abc import ABC, abstractmethod
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from decimal import Decimal
from typing import List, Optional
import threading
import structlog

from models import Account
from config import get_settings

logger = structlog.get_logger()


class NotificationService(ABC):
    @abstractmethod
    def notify_about_transfer(self, account: Account, message: str) -> None:
        """Deliver a transfer message to the account holder."""
        pass


class LoggingNotificationService(NotificationService):
    def notify_about_transfer(self, account: Account, message: str) -> None:
        logger.info(
            "Sending notification to account owner",
            account_id=account.accountId,
            notification=message
        )


class NotificationDispatcher:
    """Delivers post-transfer messages to both parties in the background.

    Each party gets an independent delivery task. A failed delivery is logged
    and dropped; it never reaches the code that requested the dispatch.
    """

    def __init__(
        self,
        notification_service: NotificationService,
        executor: Optional[Executor] = None,
        max_workers: int = 4,
        currency_symbol: str = "$"
    ):
        self.notification_service = notification_service
        self.currency_symbol = currency_symbol
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="notifications"
        )

    def dispatch(self, sender: Account, receiver: Account, amount: Decimal) -> List[Future]:
        amount_text = f"{self.currency_symbol}{amount}"
        return [
            self._executor.submit(
                self._deliver,
                sender,
                f"{amount_text} has been debited from your account {sender.accountId}"
            ),
            self._executor.submit(
                self._deliver,
                receiver,
                f"{amount_text} has been credited to your account {receiver.accountId}"
            ),
        ]

    def _deliver(self, account: Account, message: str) -> None:
        try:
            self.notification_service.notify_about_transfer(account, message)
        except Exception as e:
            logger.error(
                "Notification delivery failed",
                account_id=account.accountId,
                error=str(e),
                exc_info=True
            )

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


_dispatcher: Optional[NotificationDispatcher] = None
_dispatcher_lock = threading.Lock()


def get_notification_dispatcher() -> NotificationDispatcher:
    global _dispatcher
    with _dispatcher_lock:
        if _dispatcher is None:
            settings = get_settings()
            _dispatcher = NotificationDispatcher(
                LoggingNotificationService(),
                max_workers=settings.notification_workers,
                currency_symbol=settings.currency_symbol
            )
        return _dispatcher


def shutdown_notification_dispatcher(wait: bool = True) -> None:
    global _dispatcher
    with _dispatcher_lock:
        if _dispatcher is not None:
            _dispatcher.shutdown(wait=wait)
            _dispatcher = None
