"""
Events - Notifications emitted by an auction.

Subscribers register a callback for one event type or for all of them.
Delivery is synchronous and in emission order. Events reach subscribers
only after the emitting operation has committed, so a failing subscriber
cannot undo it: the error is logged, recorded in `delivery_errors`, and
delivery continues with the remaining subscribers.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from cca.utils.logger import get_logger

logger = get_logger("events")


class EventType(str, Enum):
    """Events emitted by the clearing engine."""
    TICK_INITIALIZED = "TickInitialized"
    CHECKPOINT_UPDATED = "CheckpointUpdated"
    BID_SUBMITTED = "BidSubmitted"
    BID_EXITED = "BidExited"
    TOKENS_CLAIMED = "TokensClaimed"
    CURRENCY_SWEPT = "CurrencySwept"
    TOKENS_SWEPT = "TokensSwept"


@dataclass(frozen=True)
class AuctionEvent:
    """A single emitted event."""
    event_type: EventType
    block: int
    data: Dict[str, Any] = field(default_factory=dict)


Handler = Callable[[AuctionEvent], None]


class EventBus:
    """
    Synchronous publish/subscribe for auction events.

    Keeps the emitted history so callers (and tests) can inspect it.
    """

    def __init__(self, keep_history: bool = True):
        self._handlers: Dict[Optional[EventType], List[Handler]] = {}
        self.keep_history = keep_history
        self.history: List[AuctionEvent] = []
        self.delivery_errors: List[Tuple[AuctionEvent, Exception]] = []

    def subscribe(self, handler: Handler, event_type: Optional[EventType] = None) -> None:
        """Register a handler for `event_type`, or every event if None."""
        self._handlers.setdefault(event_type, []).append(handler)

    def unsubscribe(self, handler: Handler, event_type: Optional[EventType] = None) -> bool:
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)
            return True
        return False

    def emit(self, event_type: EventType, block: int, **data: Any) -> AuctionEvent:
        """Deliver an event to its subscribers."""
        event = AuctionEvent(event_type=event_type, block=block, data=data)
        if self.keep_history:
            self.history.append(event)

        logger.debug(f"{event_type.value} @ {block}: {data}")
        for handler in self._handlers.get(event_type, []) + self._handlers.get(None, []):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Subscriber failed on {event_type.value} @ {block}: {e}")
                self.delivery_errors.append((event, e))
        return event

    def of_type(self, event_type: EventType) -> List[AuctionEvent]:
        """Emitted events of one type, oldest first."""
        return [e for e in self.history if e.event_type == event_type]
