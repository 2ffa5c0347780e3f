"""Simple in-memory event bus implementation."""

from __future__ import annotations
from typing import Callable, Any, Dict, List

from ..domain.interfaces.event_bus import EventBus, EventType
from ..utils.logging_setup import get_logger


logger = get_logger(__name__)


class SimpleEventBus(EventBus):
    """
    In-memory publish-subscribe channel owned by one journal session.

    Callbacks run synchronously in publish order. A failing subscriber is
    logged and does not stop delivery to the others.
    """

    def __init__(self):
        self._subscribers: Dict[EventType, List[Callable[[Any], None]]] = {}

    def publish(self, event_type: EventType, payload: Any = None) -> None:
        """
        Publish an event to all subscribers.

        Args:
            event_type: Type of event being published.
            payload: Event data (dict, dataclass, etc).
        """
        logger.debug(f"Publishing event: {event_type.value}")

        # Copy so a callback may unsubscribe itself during delivery
        for callback in list(self._subscribers.get(event_type, [])):
            try:
                callback(payload)
            except Exception as e:
                logger.error(f"Error in event subscriber: {e}", exc_info=True)

    def subscribe(self, event_type: EventType, callback: Callable[[Any], None]) -> None:
        """
        Subscribe to an event type.

        Args:
            event_type: Event type to listen for.
            callback: Function to call when event is published.
        """
        self._subscribers.setdefault(event_type, []).append(callback)
        logger.debug(f"Subscribed to {event_type.value}")

    def unsubscribe(self, event_type: EventType, callback: Callable[[Any], None]) -> None:
        """
        Unsubscribe a callback from an event type.

        Args:
            event_type: Event type.
            callback: Callback to remove.
        """
        if event_type in self._subscribers:
            try:
                self._subscribers[event_type].remove(callback)
                logger.debug(f"Unsubscribed from {event_type.value}")
            except ValueError:
                logger.warning(f"Callback not found for {event_type.value}")

    def subscriber_count(self, event_type: EventType) -> int:
        """Number of callbacks registered for an event type."""
        return len(self._subscribers.get(event_type, []))
