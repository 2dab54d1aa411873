"""
Ledger Error Module

Closed set of typed failures raised by ledger operations. Every failure is
detected before any state is mutated, so catching one of these means the
ledger is exactly as it was before the call.
"""

from enum import Enum
from typing import Any, Dict, Hashable


class ErrorKind(Enum):
    """Kinds of ledger failure"""
    INSUFFICIENT_BALANCE = "insufficient_balance"
    INSUFFICIENT_ALLOWANCE = "insufficient_allowance"
    INVALID_RECIPIENT = "invalid_recipient"
    ARITHMETIC_OVERFLOW = "arithmetic_overflow"


class LedgerError(ValueError):
    """Base class for all ledger failures; match on ``kind``"""

    kind: ErrorKind

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses and audit metadata"""
        return {"error": self.kind.value, "message": self.message}


class InsufficientBalance(LedgerError):
    """Attempted debit exceeds the account's balance"""

    kind = ErrorKind.INSUFFICIENT_BALANCE

    def __init__(self, account: Hashable, balance: int, needed: int):
        self.account = account
        self.balance = balance
        self.needed = needed
        super().__init__(
            f"Insufficient balance for {account}: balance={balance}, needed={needed}"
        )


class InsufficientAllowance(LedgerError):
    """Attempted transfer_from exceeds the remaining approved amount"""

    kind = ErrorKind.INSUFFICIENT_ALLOWANCE

    def __init__(self, owner: Hashable, spender: Hashable, allowance: int, needed: int):
        self.owner = owner
        self.spender = spender
        self.allowance = allowance
        self.needed = needed
        super().__init__(
            f"Insufficient allowance for {spender} on {owner}: "
            f"allowance={allowance}, needed={needed}"
        )


class InvalidRecipient(LedgerError):
    """Target account is the null account on a path that does not permit it"""

    kind = ErrorKind.INVALID_RECIPIENT

    def __init__(self, recipient: Hashable):
        self.recipient = recipient
        super().__init__(f"Invalid recipient: {recipient}")


class ArithmeticOverflow(LedgerError):
    """An intermediate sum would leave the representable amount range"""

    kind = ErrorKind.ARITHMETIC_OVERFLOW

    def __init__(self, operation: str, value: int):
        self.operation = operation
        self.value = value
        super().__init__(f"Arithmetic overflow in {operation}: {value}")
