# src/attractor/core/events.py
"""Synchronous event bus carrying engine events to CLI formatters."""

import threading
from collections.abc import Callable
from typing import Any, Protocol, TypeVar

T = TypeVar("T")


class EventBusProtocol(Protocol):
    """Interface satisfied by EventBus and NullEventBus without inheritance."""

    def subscribe(self, event_type: type[T], handler: Callable[[T], None]) -> None: ...

    def emit(self, event: Any) -> None: ...


class EventBus:
    """Dispatches events synchronously to subscribers of their exact type.

    Parallel branches emit from worker threads, so emission is serialized
    with a lock; handler exceptions propagate to the emitter.

    Example:
        bus = EventBus()
        bus.subscribe(NodeStarted, lambda e: print(f"-> {e.node_id}"))
        bus.emit(NodeStarted(node_id="plan", kind="llm", visit=1))
    """

    def __init__(self) -> None:
        self._subscribers: dict[type, list[Callable[[Any], None]]] = {}
        self._lock = threading.Lock()

    def subscribe(self, event_type: type[T], handler: Callable[[T], None]) -> None:
        """Subscribe a handler to an event type.

        Args:
            event_type: The event class to subscribe to
            handler: Callable that receives the event instance
        """
        self._subscribers.setdefault(event_type, []).append(handler)

    def emit(self, event: Any) -> None:
        """Emit an event to all subscribers, in subscription order.

        Events with no subscribers are ignored.
        """
        handlers = self._subscribers.get(type(event), [])
        with self._lock:
            for handler in handlers:
                handler(event)


class NullEventBus:
    """No-op event bus for library use where no CLI is present.

    Does NOT inherit from EventBus: subscribing here is a no-op, and
    inheritance would hide that from someone expecting callbacks.
    """

    def subscribe(self, event_type: type[T], handler: Callable[[T], None]) -> None:
        pass

    def emit(self, event: Any) -> None:
        pass
