"""
shipyard.services.notification_service — Event Fan-out
========================================================

The engine publishes :mod:`shipyard.engine.events` instances through a
:class:`Notifier`; the Discord layer subscribes callbacks that post
embeds.  Delivery is best-effort: a failing subscriber is logged and
never propagates into the ledger or season code that published.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

Callback = Callable[[Any], None]


class Notifier:
    """Synchronous publish/subscribe keyed by event class."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: dict[type, list[Callback]] = defaultdict(list)

    def subscribe(self, event_cls: type, callback: Callback) -> None:
        with self._lock:
            self._subscribers[event_cls].append(callback)

    def unsubscribe(self, event_cls: type, callback: Callback) -> None:
        with self._lock:
            if callback in self._subscribers.get(event_cls, []):
                self._subscribers[event_cls].remove(callback)

    def publish(self, event: Any) -> int:
        """Deliver *event* to every subscriber of its class.

        Returns the number of callbacks that completed without raising.
        """
        with self._lock:
            callbacks = list(self._subscribers.get(type(event), []))

        delivered = 0
        for callback in callbacks:
            try:
                callback(event)
                delivered += 1
            except Exception:
                logger.exception(
                    "Notification delivery failed for %s",
                    type(event).__name__,
                    extra={"task": "notify"},
                )
        return delivered


def publish_safely(notifier: Notifier | None, event: Any) -> None:
    """Publish *event* when a notifier is wired; no-op otherwise."""
    if notifier is None:
        return
    notifier.publish(event)
