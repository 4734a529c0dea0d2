"""Event fan-out for inbound protocol events."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ObsEvent:
    """An inbound Event frame payload."""

    event_type: str
    event_intent: int = 0
    event_data: Any = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> ObsEvent:
        event_type = payload.get("eventType")
        if not isinstance(event_type, str):
            raise ValueError("Event payload has no string 'eventType'")
        intent = payload.get("eventIntent", 0)
        return cls(
            event_type=event_type,
            event_intent=intent if isinstance(intent, int) else 0,
            event_data=payload.get("eventData", {}),
        )


EventCallback = Callable[[ObsEvent], Awaitable[None] | None]


class Subscription:
    """Handle returned by EventBus.subscribe(); cancel() removes the listener."""

    __slots__ = ("_bus", "_callback", "_event_type", "_active")

    def __init__(self, bus: EventBus, event_type: str, callback: EventCallback) -> None:
        self._bus = bus
        self._event_type = event_type
        self._callback = callback
        self._active = True

    @property
    def event_type(self) -> str:
        return self._event_type

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        if self._active:
            self._active = False
            self._bus.remove_listener(self._event_type, self._callback)


class EventBus:
    """Map of event type to listeners, called in registration order."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[EventCallback]] = {}
        self._tasks: set[asyncio.Future[Any]] = set()

    def add_listener(self, event_type: str, callback: EventCallback) -> None:
        self._listeners.setdefault(event_type, []).append(callback)

    def remove_listener(self, event_type: str, callback: EventCallback) -> bool:
        """Remove the first registration of ``callback`` for ``event_type``.

        Returns:
            True if a listener was removed.
        """
        listeners = self._listeners.get(event_type)
        if not listeners:
            return False
        try:
            listeners.remove(callback)
        except ValueError:
            return False
        if not listeners:
            del self._listeners[event_type]
        return True

    def subscribe(self, event_type: str, callback: EventCallback) -> Subscription:
        self.add_listener(event_type, callback)
        return Subscription(self, event_type, callback)

    def listeners(self, event_type: str) -> tuple[EventCallback, ...]:
        return tuple(self._listeners.get(event_type, ()))

    def clear(self) -> None:
        self._listeners.clear()

    def dispatch(self, event: ObsEvent) -> int:
        """Deliver an event to every listener registered for its type.

        Plain callbacks run inline, in registration order. Coroutine
        callbacks are started as tasks so they may issue requests of their
        own without blocking the frame that triggered them. A listener that
        raises is logged and does not stop delivery to the others.

        Returns:
            Number of listeners invoked.
        """
        # Snapshot so listeners may unsubscribe while being called
        listeners = self.listeners(event.event_type)
        for callback in listeners:
            try:
                result = callback(event)
            except Exception as err:
                _LOGGER.exception(
                    "Event listener for %s failed: %s", event.event_type, err
                )
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._listener_task_done)
        return len(listeners)

    async def drain(self) -> None:
        """Wait for coroutine listeners that are still running."""
        while self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _listener_task_done(self, task: asyncio.Future[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        err = task.exception()
        if err is not None:
            _LOGGER.error("Event listener task failed: %s", err, exc_info=err)
