from typing import Optional


class LedgerError(Exception):
    """Base class for account ledger errors."""


class AccountNotFoundError(LedgerError):
    """Raised when a transfer references an account that does not exist."""

    def __init__(self, message: str, account_id: Optional[str] = None, side: Optional[str] = None):
        self.account_id = account_id
        self.side = side
        super().__init__(message)


class InsufficientBalanceError(LedgerError):
    """Raised when the sender balance does not strictly exceed the transfer amount."""

    def __init__(self, message: str = "Insufficient balance to perform the transaction"):
        super().__init__(message)


class DuplicateAccountIdError(LedgerError):
    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account id {account_id} already exists!")
