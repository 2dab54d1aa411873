"""
Event System Module

Typed ledger notifications (Transfer, Burn, Approval) and a
publish/subscribe dispatcher that delivers them to observers.
"""

from enum import Enum
from typing import Callable, Dict, List, Any, Mapping, Optional
from types import MappingProxyType
from dataclasses import dataclass, field
from datetime import datetime, timezone
import uuid
import logging
from threading import RLock


class LedgerEvent(Enum):
    """Notifications emitted by the ledger"""
    TRANSFER = "Transfer"
    BURN = "Burn"
    APPROVAL = "Approval"


@dataclass(frozen=True)
class EventPayload:
    """Payload for ledger events; frozen once emitted, data is a read-only mapping"""
    event_type: LedgerEvent
    data: Mapping[str, Any]
    sequence: int = 0  # Position in the emitting ledger's event log
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self):
        object.__setattr__(self, 'data', MappingProxyType(dict(self.data)))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            'event_type': self.event_type.value,
            'data': dict(self.data),
            'sequence': self.sequence,
            'timestamp': self.timestamp.isoformat(),
            'event_id': self.event_id
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EventPayload':
        """Create from dictionary"""
        return cls(
            event_type=LedgerEvent(data['event_type']),
            data=data['data'],
            sequence=data.get('sequence', 0),
            timestamp=datetime.fromisoformat(data['timestamp']) if isinstance(data['timestamp'], str) else data['timestamp'],
            event_id=data['event_id']
        )


def transfer_event(sender, recipient, amount: int) -> EventPayload:
    """Create a Transfer(from, to, value) notification"""
    return EventPayload(
        event_type=LedgerEvent.TRANSFER,
        data={"from": sender, "to": recipient, "value": amount}
    )


def burn_event(account, amount: int) -> EventPayload:
    """Create a Burn(from, value) notification"""
    return EventPayload(
        event_type=LedgerEvent.BURN,
        data={"from": account, "value": amount}
    )


def approval_event(owner, spender, amount: int) -> EventPayload:
    """Create an Approval(owner, spender, value) notification"""
    return EventPayload(
        event_type=LedgerEvent.APPROVAL,
        data={"owner": owner, "spender": spender, "value": amount}
    )


def _handler_name(handler: Callable) -> str:
    return getattr(handler, "__name__", repr(handler))


class EventDispatcher:
    """Central event dispatcher, publish/subscribe pattern"""

    def __init__(self):
        self._handlers: Dict[LedgerEvent, List[Callable]] = {}
        self._global_handlers: List[Callable] = []  # catch-all handlers
        self._lock = RLock()
        self.logger = logging.getLogger("sdft.events")

    def subscribe(self, event_type: LedgerEvent, handler: Callable) -> None:
        """Subscribe to a specific event type"""
        with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)
            self.logger.debug(f"Subscribed handler {_handler_name(handler)} to {event_type.value}")

    def subscribe_all(self, handler: Callable) -> None:
        """Subscribe to ALL events"""
        with self._lock:
            self._global_handlers.append(handler)
            self.logger.debug(f"Subscribed global handler {_handler_name(handler)}")

    def unsubscribe(self, event_type: LedgerEvent, handler: Callable) -> None:
        """Unsubscribe from a specific event type"""
        with self._lock:
            try:
                self._handlers.get(event_type, []).remove(handler)
                self.logger.debug(f"Unsubscribed handler {_handler_name(handler)} from {event_type.value}")
            except ValueError:
                self.logger.warning(f"Handler {_handler_name(handler)} was not subscribed to {event_type.value}")

    def unsubscribe_all(self, handler: Callable) -> None:
        """Unsubscribe a catch-all handler"""
        with self._lock:
            try:
                self._global_handlers.remove(handler)
                self.logger.debug(f"Unsubscribed global handler {_handler_name(handler)}")
            except ValueError:
                self.logger.warning(f"Global handler {_handler_name(handler)} was not subscribed")

    def publish(self, event: EventPayload) -> None:
        """Publish event to all subscribers"""
        with self._lock:
            self.logger.debug(f"Publishing event {event.event_type.value} #{event.sequence}")

            for handler in list(self._handlers.get(event.event_type, [])):
                try:
                    handler(event)
                except Exception as e:
                    # Observers never break the ledger operation
                    self.logger.error(f"Error in event handler {_handler_name(handler)} for {event.event_type.value}: {e}")

            for handler in list(self._global_handlers):
                try:
                    handler(event)
                except Exception as e:
                    self.logger.error(f"Error in global event handler {_handler_name(handler)} for {event.event_type.value}: {e}")

    def clear(self) -> None:
        """Clear all handlers"""
        with self._lock:
            self._handlers.clear()
            self._global_handlers.clear()
            self.logger.info("All event handlers cleared")

    def get_handler_count(self, event_type: Optional[LedgerEvent] = None) -> int:
        """Get count of handlers for a specific event type or all"""
        with self._lock:
            if event_type:
                return len(self._handlers.get(event_type, []))
            total = sum(len(handlers) for handlers in self._handlers.values())
            return total + len(self._global_handlers)
