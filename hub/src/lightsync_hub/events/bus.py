"""Async in-process event bus.

Components publish events (scan progress, scene activations, sensor edges)
and subscribers (the websocket relay, tests) receive them. Delivery is
fire-and-forget and at-most-once: each callback is scheduled as its own task
and nothing is buffered for subscribers that join later.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Awaitable
from uuid import uuid4

logger = logging.getLogger(__name__)

# Type alias for subscriber callbacks
EventCallback = Callable[[dict[str, Any]], Awaitable[None]]


@dataclass
class Subscription:
    """Represents an active event subscription."""

    id: str = field(default_factory=lambda: uuid4().hex)
    event_types: list[str] = field(default_factory=list)
    callback: EventCallback | None = None


class EventBus:
    """Async pub/sub event bus without persistence or replay."""

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []
        self._seq = itertools.count(1)
        self._pending: set[asyncio.Task[None]] = set()

    async def publish(
        self,
        event_type: str,
        payload: dict[str, Any],
        source_id: str | None = None,
    ) -> int:
        """Notify matching subscribers. Returns the event's sequence number."""
        seq = next(self._seq)
        event = {
            "seq": seq,
            "event_type": event_type,
            "payload": payload,
            "source_id": source_id,
        }

        for sub in list(self._subscriptions):
            if "*" in sub.event_types or event_type in sub.event_types:
                if sub.callback is not None:
                    try:
                        task = asyncio.ensure_future(sub.callback(event))
                    except Exception:
                        logger.exception(
                            "Error scheduling callback for subscription %s", sub.id
                        )
                        continue
                    self._pending.add(task)
                    task.add_done_callback(self._on_delivered)

        return seq

    def _on_delivered(self, task: asyncio.Task[None]) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning("Event subscriber failed: %s", task.exception())

    def subscribe(
        self,
        event_types: list[str],
        callback: EventCallback,
    ) -> Subscription:
        """Register a callback for the given event types.

        Use ``["*"]`` to subscribe to all events.

        Returns a ``Subscription`` that can be passed to ``unsubscribe()``.
        """
        sub = Subscription(event_types=event_types, callback=callback)
        self._subscriptions.append(sub)
        return sub

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove a subscription."""
        self._subscriptions = [
            s for s in self._subscriptions if s.id != subscription.id
        ]

    async def drain(self) -> None:
        """Wait for every in-flight delivery to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
