"""
In-process lifecycle event bus (``billing_services.event_bus``).

Responsibility:
    Deliver ``LifecycleEvent`` objects to the subscribers registered for
    their type (or for every type), synchronously and in subscription
    order.

Failure modes:
    - A handler exception is logged with the event context and re-raised
      to the publisher; later handlers for that event do not run.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any

from billing_kernel.logging_config import get_logger
from billing_modules.invoicing.events import LifecycleEvent, LifecycleEventType

logger = get_logger("services.event_bus")

Handler = Callable[[LifecycleEvent], Any]


class EventBus:
    """Synchronous publish/subscribe for invoice lifecycle events."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._handlers: dict[LifecycleEventType | None, list[Handler]] = {}

    def subscribe(
        self,
        handler: Handler,
        event_types: tuple[LifecycleEventType, ...] | None = None,
    ) -> None:
        """Register ``handler`` for ``event_types``, or for all events when None."""
        with self._lock:
            if event_types is None:
                self._handlers.setdefault(None, []).append(handler)
            else:
                for event_type in event_types:
                    self._handlers.setdefault(LifecycleEventType(event_type), []).append(handler)
        logger.debug(
            "event_handler_subscribed",
            extra={
                "handler": getattr(handler, "__qualname__", repr(handler)),
                "event_types": [t.value for t in event_types] if event_types else "*",
            },
        )

    def _handlers_for(self, event_type: LifecycleEventType) -> list[Handler]:
        with self._lock:
            return list(self._handlers.get(event_type, ())) + list(self._handlers.get(None, ()))

    def publish(self, event: LifecycleEvent) -> None:
        for handler in self._handlers_for(event.event_type):
            try:
                handler(event)
            except Exception:
                logger.error(
                    "event_handler_failed",
                    extra={
                        "event_type": event.event_type.value,
                        "event_id": str(event.event_id),
                        "invoice_id": str(event.invoice_id),
                        "handler": getattr(handler, "__qualname__", repr(handler)),
                    },
                    exc_info=True,
                )
                raise

    def publish_all(self, events: tuple[LifecycleEvent, ...]) -> None:
        for event in events:
            self.publish(event)
