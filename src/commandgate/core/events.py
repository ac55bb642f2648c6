"""Lifecycle event bus for the gateway and executor.

Observers register handlers on an ``EventBus``. Delivery is synchronous,
in publish order, at most once per handler, with no replay for handlers that
subscribe later. A failing handler is logged and does not affect the others
or the publisher.
"""

import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal, get_args

from commandgate.core.logger import get_logger

logger = get_logger("events")

# When adding new event types, add them here and to tests/unit/test_events.py

EventType = Literal[
    # Pipeline stages (gateway)
    "execution_started",
    "command_analyzed",
    "security_validated",
    "confirmation_requested",
    "confirmation_resolved",
    "execution_completed",
    "execution_failed",
    "batch_item_failed",
    # Process supervision (executor)
    "stdout",
    "stderr",
    "executor_completed",
    "executor_error",
    # Configuration
    "config_updated",
]

EVENT_TYPES: frozenset[str] = frozenset(get_args(EventType))

EventHandler = Callable[["GatewayEvent"], None]


@dataclass(frozen=True)
class GatewayEvent:
    """One occurrence on the event stream.

    Attributes:
        type: Event type identifier
        data: Event payload
        ts: ISO timestamp when the event was created
        execution_id: Execution the event belongs to, when there is one
        id: Unique event id
    """

    type: EventType
    data: dict[str, Any]
    ts: str = field(default_factory=lambda: datetime.now(UTC).isoformat())
    execution_id: str | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self) -> None:
        if not isinstance(self.data, dict):
            raise ValueError(f"Event data must be dict, got {type(self.data)}")
        if self.type not in EVENT_TYPES:
            raise ValueError(f"Unknown event type: {self.type}")


class EventBus:
    """Publish/subscribe registry decoupling the gateway from its observers."""

    def __init__(self) -> None:
        self._subscribers: list[tuple[EventHandler, frozenset[str] | None]] = []
        self._closed = False

    def publish(self, event: GatewayEvent) -> None:
        """Deliver ``event`` to every matching subscriber, in subscription order."""
        if self._closed:
            logger.warn("Publishing to closed event bus", event_type=event.type)
            return

        for handler, types in self._subscribers[:]:
            if types is not None and event.type not in types:
                continue
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    "EventBus: Handler failed",
                    error=str(e),
                    handler=getattr(handler, "__name__", repr(handler)),
                    event_type=event.type,
                    event_id=event.id,
                )

    def emit(
        self, event_type: EventType, data: dict[str, Any], execution_id: str | None = None
    ) -> GatewayEvent:
        """Build and publish an event in one call."""
        event = GatewayEvent(type=event_type, data=data, execution_id=execution_id)
        self.publish(event)
        return event

    def subscribe(
        self, handler: EventHandler, event_types: Iterable[EventType] | None = None
    ) -> None:
        """Subscribe to events.

        Args:
            handler: Callback receiving each event
            event_types: Only deliver these types (None = all)
        """
        if any(existing is handler for existing, _ in self._subscribers):
            return
        types = None
        if event_types is not None:
            types = frozenset(event_types)
            unknown = types - EVENT_TYPES
            if unknown:
                raise ValueError(f"Unknown event types: {sorted(unknown)}")
        self._subscribers.append((handler, types))

    def unsubscribe(self, handler: EventHandler) -> None:
        self._subscribers = [(h, t) for h, t in self._subscribers if h is not handler]

    def clear(self) -> None:
        self._subscribers.clear()

    def close(self) -> None:
        """Stop delivering events. Later publishes are dropped with a warning."""
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
