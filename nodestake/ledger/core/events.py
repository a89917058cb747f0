"""
Event system for ledger state transitions.

Every accepted operation emits one event per state transition (Stake,
Unstake, PunishFromReward, ...). Pools buffer events while an operation runs
and publish them here only after it commits, so a subscriber never sees an
event for a rolled-back operation.
"""
from typing import Dict, List, Callable, Any, Union
import logging

from ..observability.metrics import events_total
from ...protocol.types.common import EventType

logger = logging.getLogger(__name__)

ALL_EVENTS = "*"


class EventBus:
    """
    Simple synchronous event bus.

    Events are delivered in the emitting thread, in subscription order.
    Subscribing to ALL_EVENTS receives every event with an extra
    `event_type` keyword.
    """

    def __init__(self):
        self.listeners: Dict[str, List[Callable]] = {}
        self.history: List[Dict[str, Any]] = []
        self.keep_history = False

    def subscribe(self, event_type: Union[EventType, str], callback: Callable) -> None:
        """
        Subscribe to an event type.

        Args:
            event_type: EventType (or ALL_EVENTS)
            callback: Function called with the event payload as keyword arguments
        """
        key = _key(event_type)
        if key not in self.listeners:
            self.listeners[key] = []

        self.listeners[key].append(callback)
        logger.debug(f"Subscribed to event: {key}")

    def unsubscribe(self, event_type: Union[EventType, str], callback: Callable) -> None:
        key = _key(event_type)
        if key in self.listeners:
            try:
                self.listeners[key].remove(callback)
                logger.debug(f"Unsubscribed from event: {key}")
            except ValueError:
                logger.warning(f"Callback not found for event: {key}")

    def emit(self, event_type: Union[EventType, str], **data: Any) -> None:
        """
        Emit an event to all subscribers.

        Args:
            event_type: Event name
            **data: Event payload (pool, account, amount, timestamp, ...)
        """
        key = _key(event_type)
        events_total.labels(event=key).inc()

        if self.keep_history:
            self.history.append({"event_type": key, **data})

        listeners = self.listeners.get(key, []) + self.listeners.get(ALL_EVENTS, [])
        if not listeners:
            logger.debug(f"No listeners for event: {key}")
            return

        logger.debug(f"Emitting event: {key} to {len(listeners)} listener(s)")

        for callback in self.listeners.get(key, []):
            try:
                callback(**data)
            except Exception as e:
                logger.error(f"Error in event callback for {key}: {e}", exc_info=True)

        for callback in self.listeners.get(ALL_EVENTS, []):
            try:
                callback(event_type=key, **data)
            except Exception as e:
                logger.error(f"Error in wildcard callback for {key}: {e}", exc_info=True)

    def clear(self, event_type: Union[EventType, str, None] = None) -> None:
        """
        Clear all listeners for an event type, or all listeners if no type specified.
        """
        if event_type:
            self.listeners.pop(_key(event_type), None)
            logger.debug(f"Cleared listeners for event: {_key(event_type)}")
        else:
            self.listeners.clear()
            self.history.clear()
            logger.debug("Cleared all event listeners")


def _key(event_type: Union[EventType, str]) -> str:
    return event_type.value if isinstance(event_type, EventType) else str(event_type)


# Global event bus instance
event_bus = EventBus()
