"""
GigVault EventBus: async in-process pub/sub.

Purpose
-------
Decouple resolvers from side effects (audit sinks, notifications, analytics)
by publishing domain events after a unit has committed.

Responsibilities
----------------
- Register/unregister listeners for exact names or wildcard patterns
  ("pvp.*", "*.claimed", "*")
- Publish events to all matching listeners, sync or async
- Error isolation: one failing listener never blocks others or the publisher

Design Decisions
----------------
- **Instance-based**: each ServiceContainer owns one bus; tests build their own
- **Post-commit only**: services publish after their transaction exits, so a
  listener never observes state that was rolled back
- **No persistence**: events are notifications, the ledger is the truth
"""

from __future__ import annotations

import inspect
import uuid
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from gigvault.core.logging.logger import get_logger

logger = get_logger(__name__)

EventPayload = Dict[str, Any]
CallbackType = Callable[[EventPayload], Union[Any, Awaitable[Any]]]


@dataclass
class EventListener:
    pattern: str
    callback: CallbackType
    identifier: str
    once: bool = False


@dataclass
class EventBusMetrics:
    events_published: int = 0
    listener_invocations: int = 0
    listener_errors: int = 0
    published_by_event: Dict[str, int] = field(default_factory=dict)


class EventBus:
    """
    Async pub/sub with wildcard routing and per-listener error isolation.

    Examples
    --------
    >>> bus = EventBus()
    >>> bus.subscribe("task.claimed", on_task_claimed)
    >>> await bus.publish("task.claimed", {"account_identity": 42, "reward": 500})
    """

    def __init__(self) -> None:
        self._listeners: List[EventListener] = []
        self._metrics = EventBusMetrics()

    # ------------------------------------------------------------------ #
    # Subscription API
    # ------------------------------------------------------------------ #

    def subscribe(
        self,
        event_name: str,
        callback: CallbackType,
        *,
        identifier: Optional[str] = None,
        once: bool = False,
    ) -> str:
        """
        Subscribe a callback to an event name or wildcard pattern.

        Returns
        -------
        str:
            The listener identifier (for unsubscribing later).

        Raises
        ------
        ValueError:
            If the pattern is empty or the callback is not callable.
        """
        if not event_name:
            raise ValueError("event_name must be a non-empty string")
        if not callable(callback):
            raise ValueError("callback must be callable")

        listener = EventListener(
            pattern=event_name,
            callback=callback,
            identifier=identifier or uuid.uuid4().hex[:12],
            once=once,
        )
        self._listeners.append(listener)

        logger.debug(
            "EventBus: subscribed listener",
            extra={
                "event_name": event_name,
                "listener_id": listener.identifier,
                "once": once,
            },
        )
        return listener.identifier

    def unsubscribe(self, event_name: str, identifier: str) -> bool:
        before = len(self._listeners)
        self._listeners = [
            listener
            for listener in self._listeners
            if not (listener.pattern == event_name and listener.identifier == identifier)
        ]
        removed = len(self._listeners) < before

        if removed:
            logger.debug(
                "EventBus: unsubscribed listener",
                extra={"event_name": event_name, "listener_id": identifier},
            )
        return removed

    def clear(self) -> None:
        """Remove all listeners. Primarily intended for tests."""
        previous = len(self._listeners)
        self._listeners = []
        logger.info(
            "EventBus: cleared all listeners",
            extra={"previous_listener_count": previous},
        )

    # ------------------------------------------------------------------ #
    # Publish API
    # ------------------------------------------------------------------ #

    async def publish(self, event_name: str, data: EventPayload) -> List[Any]:
        """
        Publish an event to all matching listeners, in subscription order.

        Returns
        -------
        list[Any]:
            Results of listeners that completed without raising.
        """
        self._metrics.events_published += 1
        self._metrics.published_by_event[event_name] = (
            self._metrics.published_by_event.get(event_name, 0) + 1
        )

        matching = [
            listener
            for listener in self._listeners
            if fnmatchcase(event_name, listener.pattern)
        ]

        if not matching:
            logger.debug(
                "EventBus: no listeners for event",
                extra={"event_name": event_name},
            )
            return []

        once_ids = {id(listener) for listener in matching if listener.once}
        if once_ids:
            self._listeners = [
                listener for listener in self._listeners if id(listener) not in once_ids
            ]

        results: List[Any] = []
        for listener in matching:
            self._metrics.listener_invocations += 1
            try:
                result = listener.callback(data)
                if inspect.isawaitable(result):
                    result = await result
                results.append(result)
            except Exception as exc:
                self._metrics.listener_errors += 1
                logger.error(
                    "EventBus: listener failed",
                    extra={
                        "event_name": event_name,
                        "listener_id": listener.identifier,
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                    exc_info=True,
                )

        return results

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    def get_listener_count(self, event_name: Optional[str] = None) -> int:
        if event_name is None:
            return len(self._listeners)
        return sum(
            1 for listener in self._listeners if fnmatchcase(event_name, listener.pattern)
        )

    def get_metrics_summary(self) -> Dict[str, Any]:
        return {
            "events_published": self._metrics.events_published,
            "listener_invocations": self._metrics.listener_invocations,
            "listener_errors": self._metrics.listener_errors,
            "listener_count": len(self._listeners),
            "published_by_event": dict(self._metrics.published_by_event),
        }
