"""
Simple DeFi Token Ledger

A fungible-token ledger with a fixed total supply, allowance-based
delegated transfers and an auto-burn transfer, using exact integer
fixed-point amounts and a hash-chained audit trail.
"""

__version__ = "1.0.0"

from .errors import (
    ErrorKind, LedgerError, InsufficientBalance, InsufficientAllowance,
    InvalidRecipient, ArithmeticOverflow
)
from .events import EventDispatcher, EventPayload, LedgerEvent
from .ledger import TokenLedger, BurnReceipt, LedgerSnapshot, ZERO_ADDRESS, MAX_AMOUNT
from .units import Unit, TOKEN_DECIMALS, ONE_TOKEN, to_base_units, to_decimal_string
