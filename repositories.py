from abc import ABC, abstractmethod
from typing import Dict, Iterable, Optional
import threading

from models import Account
from exceptions import DuplicateAccountIdError


class AccountRepository(ABC):
    @abstractmethod
    def create_account(self, account: Account) -> None:
        """Store a new account. Raises DuplicateAccountIdError if the id is taken."""
        pass

    @abstractmethod
    def get_account(self, account_id: str) -> Optional[Account]:
        """Get account record. Returns None if account doesn't exist."""
        pass

    @abstractmethod
    def commit_account(self, account: Account) -> None:
        """Replace the stored record for account.accountId."""
        pass

    @abstractmethod
    def commit_accounts(self, accounts: Iterable[Account]) -> None:
        """Replace several stored records as a single step."""
        pass

    @abstractmethod
    def get_accounts_count(self) -> int:
        """Get total number of accounts."""
        pass


class InMemoryAccountRepository(AccountRepository):
    def __init__(self):
        self.accounts: Dict[str, Account] = {}
        self._lock = threading.Lock()

    def create_account(self, account: Account) -> None:
        with self._lock:
            if account.accountId in self.accounts:
                raise DuplicateAccountIdError(account.accountId)
            self.accounts[account.accountId] = account

    def get_account(self, account_id: str) -> Optional[Account]:
        with self._lock:
            return self.accounts.get(account_id)

    def commit_account(self, account: Account) -> None:
        self.commit_accounts([account])

    def commit_accounts(self, accounts: Iterable[Account]) -> None:
        batch = list(accounts)
        with self._lock:
            # Validate the whole batch before touching any record
            for account in batch:
                if account.accountId not in self.accounts:
                    raise ValueError(f"Account {account.accountId} does not exist")
            for account in batch:
                self.accounts[account.accountId] = account

    def get_accounts_count(self) -> int:
        with self._lock:
            return len(self.accounts)

    def clear(self) -> None:
        """Remove all accounts (for testing)."""
        with self._lock:
            self.accounts.clear()


# Singleton instance, swapped out by reset_repositories() in tests
_account_repo = InMemoryAccountRepository()


def get_account_repository() -> AccountRepository:
    return _account_repo


def reset_repositories():
    """Reset the account store to an empty state (for testing only)."""
    global _account_repo
    _account_repo = InMemoryAccountRepository()
