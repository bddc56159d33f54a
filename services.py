from decimal import Decimal
from typing import Optional, Tuple
import structlog

from models import Account, TransferStatus
from repositories import AccountRepository
from locking import AccountLockRegistry
from notifications import NotificationDispatcher
from exceptions import AccountNotFoundError, InsufficientBalanceError, LedgerError

# Configure structured logging
logger = structlog.get_logger()


class AccountsService:
    def __init__(self, account_repo: AccountRepository):
        self.account_repo = account_repo

    def create_account(self, account: Account) -> Account:
        self.account_repo.create_account(account)
        logger.info(
            "Account created",
            account_id=account.accountId,
            balance=str(account.balance)
        )
        return account

    def get_account(self, account_id: str) -> Optional[Account]:
        return self.account_repo.get_account(account_id)

    def get_accounts_count(self) -> int:
        return self.account_repo.get_accounts_count()


class TransferService:
    """Moves money between two accounts held in the same store.

    The service keeps no state between calls. Account locks come from the
    shared registry and are always taken in lexicographic id order, so two
    transfers over the same pair of accounts can never wait on each other
    in a cycle.
    """

    def __init__(
        self,
        account_repo: AccountRepository,
        lock_registry: AccountLockRegistry,
        notification_dispatcher: NotificationDispatcher
    ):
        self.account_repo = account_repo
        self.lock_registry = lock_registry
        self.notification_dispatcher = notification_dispatcher

    def transfer(self, sender_id: str, receiver_id: str, amount: Decimal) -> TransferStatus:
        """Debit sender_id and credit receiver_id by amount.

        Returns TransferStatus.transferred once both records are committed, or
        TransferStatus.failed if anything unexpected raised while the locks were
        held. Raises AccountNotFoundError and InsufficientBalanceError for the
        checked failures.
        """
        logger.info(
            "Processing transfer",
            sender_id=sender_id,
            receiver_id=receiver_id,
            amount=str(amount)
        )

        sender = self._resolve(sender_id, "sender")
        self._resolve(receiver_id, "receiver")

        # Lock-free early rejection; the check under the locks is authoritative
        self._check_balance(sender, amount)

        committed = self._transfer_locked(sender_id, receiver_id, amount)
        if committed is None:
            return TransferStatus.failed

        self._notify(*committed, amount)
        return TransferStatus.transferred

    def _resolve(self, account_id: str, side: str) -> Account:
        account = self.account_repo.get_account(account_id)
        if account is None:
            logger.warning(
                "Account not found",
                account_id=account_id,
                side=side
            )
            raise AccountNotFoundError(
                f"{side.capitalize()} account not found",
                account_id=account_id,
                side=side
            )
        return account

    def _check_balance(self, sender: Account, amount: Decimal) -> None:
        # Strict comparison: a transfer may not drain the account to zero
        if sender.balance <= amount:
            logger.warning(
                "Insufficient balance for transfer",
                account_id=sender.accountId,
                current_balance=str(sender.balance),
                requested_amount=str(amount)
            )
            raise InsufficientBalanceError()

    def _transfer_locked(
        self,
        sender_id: str,
        receiver_id: str,
        amount: Decimal
    ) -> Optional[Tuple[Account, Account]]:
        """Run the critical section. Returns the committed records, or None on failure."""
        first_id, second_id = sorted((sender_id, receiver_id))
        first_lock = self.lock_registry.lock_for(first_id)
        second_lock = self.lock_registry.lock_for(second_id)

        with first_lock:
            with second_lock:
                try:
                    # Balances may have moved since the unlocked read
                    sender = self._resolve(sender_id, "sender")
                    receiver = self._resolve(receiver_id, "receiver")
                    self._check_balance(sender, amount)

                    debited = sender.model_copy(update={"balance": sender.balance - amount})
                    credited = receiver.model_copy(update={"balance": receiver.balance + amount})
                    self.account_repo.commit_accounts([debited, credited])
                except LedgerError:
                    raise
                except Exception as e:
                    logger.error(
                        "Transfer failed inside the locked section",
                        sender_id=sender_id,
                        receiver_id=receiver_id,
                        amount=str(amount),
                        error=str(e),
                        exc_info=True
                    )
                    return None

        logger.info(
            "Transfer committed",
            sender_id=sender_id,
            receiver_id=receiver_id,
            amount=str(amount),
            sender_balance=str(debited.balance),
            receiver_balance=str(credited.balance)
        )
        return debited, credited

    def _notify(self, sender: Account, receiver: Account, amount: Decimal) -> None:
        try:
            self.notification_dispatcher.dispatch(sender, receiver, amount)
        except Exception as e:
            logger.error(
                "Could not schedule transfer notifications",
                sender_id=sender.accountId,
                receiver_id=receiver.accountId,
                error=str(e),
                exc_info=True
            )


# Factory functions for dependency injection
def get_accounts_service(account_repo: AccountRepository) -> AccountsService:
    return AccountsService(account_repo)


def get_transfer_service(
    account_repo: AccountRepository,
    lock_registry: AccountLockRegistry,
    notification_dispatcher: NotificationDispatcher
) -> TransferService:
    return TransferService(account_repo, lock_registry, notification_dispatcher)
