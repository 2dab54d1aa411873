"""
Token Ledger Engine

Balance and allowance bookkeeping for the Simple DeFi Token. Total supply is
always equal to the sum of all balances; it is fixed at genesis and only
ever decreases through auto-burn transfers. Every operation validates first
and commits second, under one lock, so a failed call changes nothing.
"""

from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Dict, Hashable, List, Optional, Tuple
import threading

from .audit import AuditTrail, AuditEventType
from .config import TokenConfig, get_config
from .errors import (
    LedgerError, InsufficientBalance, InsufficientAllowance,
    InvalidRecipient, ArithmeticOverflow
)
from .events import (
    EventDispatcher, EventPayload, LedgerEvent,
    transfer_event, burn_event, approval_event
)
from .logging_config import get_logger, log_action
from .units import TOKEN_DECIMALS, to_base_units, to_decimal_string

ZERO_ADDRESS = "0x" + "0" * 40
MAX_AMOUNT = 2 ** 256 - 1

Account = Hashable


@dataclass(frozen=True)
class LedgerSnapshot:
    """Point-in-time copy of the ledger state"""
    total_supply: int
    balances: Dict[Account, int]
    allowances: Dict[Tuple[Account, Account], int]


@dataclass(frozen=True)
class BurnReceipt:
    """Outcome of an auto-burn transfer"""
    sender: Account
    recipient: Account
    amount: int     # Debited from the sender
    burned: int     # Removed from total supply
    delivered: int  # Credited to the recipient


def _require_amount(amount) -> None:
    """Amounts are non-negative ints; anything else is a caller bug"""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValueError(f"Amount must be an integer number of base units, got {amount!r}")
    if amount < 0:
        raise ValueError(f"Amount cannot be negative: {amount}")


class TokenLedger:
    """
    Authoritative record of balances, allowances and total supply

    One instance per token. Callers may share it across threads; every
    query and mutation is serialized on an internal lock.
    """

    def __init__(
        self,
        name: str = "Simple DeFi Token",
        symbol: str = "SDFT",
        decimals: int = TOKEN_DECIMALS,
        burn_rate_percent: int = 10,
        reject_zero_recipient: bool = True,
        event_dispatcher: Optional[EventDispatcher] = None,
        audit_trail: Optional[AuditTrail] = None
    ):
        if not 0 <= burn_rate_percent <= 100:
            raise ValueError("burn_rate_percent must be between 0 and 100")

        self._name = name
        self._symbol = symbol
        self._decimals = decimals
        self._burn_rate_percent = burn_rate_percent
        self.reject_zero_recipient = reject_zero_recipient

        self._balances: Dict[Account, int] = {}
        self._allowances: Dict[Tuple[Account, Account], int] = {}
        self._total_supply = 0
        self._initialized = False
        self._events: List[EventPayload] = []

        self._lock = threading.RLock()
        self._event_dispatcher = event_dispatcher
        self.audit_trail = audit_trail
        self.logger = get_logger("sdft.ledger")

    @classmethod
    def from_config(cls, config: Optional[TokenConfig] = None, **kwargs) -> 'TokenLedger':
        """Build an uninitialized ledger from configuration"""
        config = config or get_config()
        return cls(
            name=config.token_name,
            symbol=config.token_symbol,
            decimals=config.token_decimals,
            burn_rate_percent=config.burn_rate_percent,
            reject_zero_recipient=config.reject_zero_recipient,
            **kwargs
        )

    @classmethod
    def deploy(
        cls,
        deployer: Account,
        total_supply: Optional[int] = None,
        config: Optional[TokenConfig] = None,
        **kwargs
    ) -> 'TokenLedger':
        """
        Create and initialize a ledger in one step

        Args:
            deployer: Account credited with the whole supply
            total_supply: Supply in base units; defaults to the configured
                initial supply (whole tokens)
            config: Configuration to use instead of the global one
            **kwargs: Passed through to the constructor (dispatcher, audit trail)

        Returns:
            Initialized TokenLedger
        """
        config = config or get_config()
        ledger = cls.from_config(config, **kwargs)
        if total_supply is None:
            total_supply = to_base_units(config.initial_supply, config.token_decimals)
        ledger.initialize(deployer, total_supply)
        return ledger

    # Queries

    def name(self) -> str:
        return self._name

    def symbol(self) -> str:
        return self._symbol

    def decimals(self) -> int:
        return self._decimals

    @property
    def burn_rate_percent(self) -> int:
        return self._burn_rate_percent

    @property
    def initialized(self) -> bool:
        return self._initialized

    def total_supply(self) -> int:
        with self._lock:
            return self._total_supply

    def balance_of(self, account: Account) -> int:
        with self._lock:
            return self._balances.get(account, 0)

    def allowance(self, owner: Account, spender: Account) -> int:
        with self._lock:
            return self._allowances.get((owner, spender), 0)

    def holders(self) -> List[Account]:
        """Accounts with a non-zero balance, in first-credited order"""
        with self._lock:
            return [account for account, balance in self._balances.items() if balance > 0]

    def get_events(self, event_type: Optional[LedgerEvent] = None) -> List[EventPayload]:
        """Emitted notifications in emission order, optionally filtered by type"""
        with self._lock:
            if event_type is None:
                return list(self._events)
            return [event for event in self._events if event.event_type == event_type]

    def snapshot(self) -> LedgerSnapshot:
        with self._lock:
            return LedgerSnapshot(
                total_supply=self._total_supply,
                balances=dict(self._balances),
                allowances=dict(self._allowances)
            )

    def check_invariants(self) -> None:
        """
        Verify supply conservation and non-negative balances

        Raises:
            ValueError: If the sum of balances differs from total supply or
                any balance is negative
        """
        with self._lock:
            negative = {a: b for a, b in self._balances.items() if b < 0}
            if negative:
                raise ValueError(f"Negative balances: {negative}")
            balance_sum = sum(self._balances.values())
            if balance_sum != self._total_supply:
                raise ValueError(
                    f"Total supply {self._total_supply} does not match sum of balances {balance_sum}"
                )

    # Mutations

    def initialize(self, deployer: Account, total_supply: int) -> None:
        """
        Genesis: credit the entire supply to the deployer

        Can only be called once per ledger.

        Raises:
            ValueError: If already initialized or the supply is not a
                non-negative int
            InvalidRecipient: If the deployer is the zero address
            ArithmeticOverflow: If the supply exceeds MAX_AMOUNT
        """
        with self._operation("initialize", deployer):
            if self._initialized:
                raise ValueError("Ledger already initialized")
            _require_amount(total_supply)
            if deployer == ZERO_ADDRESS:
                raise InvalidRecipient(deployer)
            if total_supply > MAX_AMOUNT:
                raise ArithmeticOverflow("initialize", total_supply)

            self._audit(AuditEventType.TOKEN_DEPLOYED, deployer, {
                "name": self._name,
                "symbol": self._symbol,
                "total_supply": total_supply,
                "burn_rate_percent": self._burn_rate_percent
            })

            self._balances[deployer] = total_supply
            self._total_supply = total_supply
            self._initialized = True
            self._emit(transfer_event(ZERO_ADDRESS, deployer, total_supply))

            log_action(
                self.logger, "info",
                f"Deployed {self._symbol} with supply {to_decimal_string(total_supply, self._decimals)}",
                account=str(deployer), action="initialize",
                extra={"total_supply": str(total_supply)}
            )

    def transfer(self, sender: Account, recipient: Account, amount: int) -> bool:
        """
        Move ``amount`` base units from sender to recipient

        Returns:
            True on success

        Raises:
            InvalidRecipient: If the recipient is the zero address
            InsufficientBalance: If the sender's balance is below ``amount``
            ArithmeticOverflow: If the recipient's balance would overflow
        """
        with self._operation("transfer", sender):
            _require_amount(amount)
            self._check_recipient(recipient)
            updates = self._plan_move(sender, recipient, amount, amount, "transfer")

            self._audit(AuditEventType.TRANSFER, sender, {
                "recipient": recipient, "amount": amount
            })
            self._balances.update(updates)
            self._emit(transfer_event(sender, recipient, amount))

            log_action(
                self.logger, "info", f"Transfer of {amount} from {sender} to {recipient}",
                account=str(sender), action="transfer", resource=str(recipient)
            )
            return True

    def transfer_with_auto_burn(self, sender: Account, recipient: Account, amount: int) -> BurnReceipt:
        """
        Transfer that destroys ``burn_rate_percent`` of the amount

        The sender is debited the full amount. The burned share is truncated
        to whole base units and removed from total supply; the recipient is
        credited the rest. Emits Burn then Transfer.

        Returns:
            BurnReceipt with the debited, burned and delivered amounts

        Raises:
            InvalidRecipient: If the recipient is the zero address
            InsufficientBalance: If the sender's balance is below ``amount``
            ArithmeticOverflow: If the recipient's balance would overflow
        """
        with self._operation("transfer_with_auto_burn", sender):
            _require_amount(amount)
            self._check_recipient(recipient)

            burned = amount * self._burn_rate_percent // 100
            delivered = amount - burned
            updates = self._plan_move(sender, recipient, amount, delivered, "transfer_with_auto_burn")

            self._audit(AuditEventType.TRANSFER_WITH_BURN, sender, {
                "recipient": recipient, "amount": amount,
                "burned": burned, "delivered": delivered
            })
            self._balances.update(updates)
            self._total_supply -= burned
            self._emit(burn_event(sender, burned))
            self._emit(transfer_event(sender, recipient, delivered))

            log_action(
                self.logger, "info",
                f"Transfer of {delivered} from {sender} to {recipient} with {burned} burned",
                account=str(sender), action="transfer_with_auto_burn", resource=str(recipient),
                extra={"amount": str(amount), "burned": str(burned)}
            )
            return BurnReceipt(
                sender=sender, recipient=recipient,
                amount=amount, burned=burned, delivered=delivered
            )

    def approve(self, owner: Account, spender: Account, amount: int) -> bool:
        """Set (not add to) the amount ``spender`` may move out of ``owner``'s balance"""
        with self._operation("approve", owner):
            _require_amount(amount)
            if amount > MAX_AMOUNT:
                raise ArithmeticOverflow("approve", amount)

            self._audit(AuditEventType.APPROVAL, owner, {
                "spender": spender, "amount": amount
            })
            self._allowances[(owner, spender)] = amount
            self._emit(approval_event(owner, spender, amount))

            log_action(
                self.logger, "info", f"Approval of {amount} for {spender} on {owner}",
                account=str(owner), action="approve", resource=str(spender)
            )
            return True

    def transfer_from(self, spender: Account, owner: Account, recipient: Account, amount: int) -> bool:
        """
        Move ``amount`` from ``owner`` to ``recipient`` on the owner's behalf

        Consumes ``amount`` of the spender's allowance, except for an
        allowance of MAX_AMOUNT, which is unlimited.

        Returns:
            True on success

        Raises:
            InvalidRecipient: If the recipient is the zero address
            InsufficientAllowance: If the allowance is below ``amount``
            InsufficientBalance: If the owner's balance is below ``amount``
            ArithmeticOverflow: If the recipient's balance would overflow
        """
        with self._operation("transfer_from", spender):
            _require_amount(amount)
            self._check_recipient(recipient)

            allowed = self._allowances.get((owner, spender), 0)
            if allowed < amount:
                raise InsufficientAllowance(owner, spender, allowed, amount)
            updates = self._plan_move(owner, recipient, amount, amount, "transfer_from")

            self._audit(AuditEventType.TRANSFER_FROM, spender, {
                "owner": owner, "recipient": recipient, "amount": amount
            })
            if allowed != MAX_AMOUNT:
                self._allowances[(owner, spender)] = allowed - amount
            self._balances.update(updates)
            self._emit(transfer_event(owner, recipient, amount))

            log_action(
                self.logger, "info", f"Transfer of {amount} from {owner} to {recipient} by {spender}",
                account=str(spender), action="transfer_from", resource=str(recipient)
            )
            return True

    # Internals

    @contextmanager
    def _operation(self, operation: str, initiator: Account):
        """Serialize an operation and record it if it is rejected"""
        with self._lock:
            try:
                yield
            except LedgerError as e:
                self._record_rejection(operation, initiator, e)
                raise

    def _check_recipient(self, recipient: Account) -> None:
        if self.reject_zero_recipient and recipient == ZERO_ADDRESS:
            raise InvalidRecipient(recipient)

    def _plan_move(
        self,
        source: Account,
        target: Account,
        debit: int,
        credit: int,
        operation: str
    ) -> Dict[Account, int]:
        """Compute the new balances of a move without applying them"""
        balance = self._balances.get(source, 0)
        if balance < debit:
            raise InsufficientBalance(source, balance, debit)

        updates = {source: balance - debit}
        credited = updates.get(target, self._balances.get(target, 0)) + credit
        if credited > MAX_AMOUNT:
            raise ArithmeticOverflow(operation, credited)
        updates[target] = credited
        return updates

    def _emit(self, event: EventPayload) -> None:
        event = replace(event, sequence=len(self._events))
        self._events.append(event)
        if self._event_dispatcher:
            self._event_dispatcher.publish(event)

    def _audit(self, event_type: AuditEventType, initiator: Account, metadata: Dict) -> None:
        # Written before the commit so a storage failure leaves the ledger untouched
        if self.audit_trail:
            self.audit_trail.log_event(event_type, initiator, metadata)

    def _record_rejection(self, operation: str, initiator: Account, error: LedgerError) -> None:
        log_action(
            self.logger, "warning", f"Rejected {operation}: {error.message}",
            account=str(initiator), action=operation,
            extra={"error": error.kind.value}
        )
        if self.audit_trail:
            self.audit_trail.log_event(AuditEventType.OPERATION_REJECTED, initiator, {
                "operation": operation,
                **error.to_dict()
            })
