# Copyright (c) 2023-2025, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Any, NamedTuple

__all__ = (
    "ALL",
    "Emitter",
    "PileEvent",
)


class PileEvent(str, Enum):
    """Event names emitted by piles and records.

    Attribute changes are additionally emitted as ``change:<attribute>``.
    """

    ADD = "add"
    REMOVE = "remove"
    RESET = "reset"
    SYNC = "sync"
    CHANGE = "change"
    DESTROYED = "destroyed"
    ERROR = "error"
    ALL = "all"

    def __str__(self) -> str:
        return self.value


ALL = PileEvent.ALL.value


class _Handler(NamedTuple):
    callback: Callable[..., Any]
    context: Any
    once: bool


def _names(events: str | PileEvent) -> list[str]:
    if isinstance(events, PileEvent):
        return [events.value]
    return events.split()


class Emitter:
    """Synchronous named-event emitter owned by each observable entity.

    Listeners registered on ``"all"`` are called for every event with the
    event name prepended to the arguments, after the event's own listeners.
    Several event names may be given at once, separated by spaces.

    ``trigger`` works on a snapshot of the listener lists, so a listener may
    subscribe, unsubscribe, or trigger further events while it runs; the
    change takes effect from the next ``trigger``. Listener exceptions
    propagate to whoever called ``trigger``.

    Example::

        emitter = Emitter()
        emitter.on("change:title", lambda record, value, options: ...)
        emitter.trigger("change:title", record, "New", {})
    """

    __slots__ = ("_handlers",)

    def __init__(self) -> None:
        self._handlers: dict[str, list[_Handler]] = {}

    def on(
        self,
        events: str | PileEvent,
        callback: Callable[..., Any],
        context: Any = None,
    ) -> None:
        """Subscribe ``callback`` to one or more space-separated events.

        Args:
            events: Event name(s); ``"all"`` receives every event.
            callback: Called with the trigger arguments.
            context: Optional tag used to unsubscribe a group of listeners.
        """
        for name in _names(events):
            self._handlers.setdefault(name, []).append(
                _Handler(callback, context, False)
            )

    def once(
        self,
        events: str | PileEvent,
        callback: Callable[..., Any],
        context: Any = None,
    ) -> None:
        """Like `on`, but the listener is dropped after its first call."""
        for name in _names(events):
            self._handlers.setdefault(name, []).append(
                _Handler(callback, context, True)
            )

    def off(
        self,
        events: str | PileEvent | None = None,
        callback: Callable[..., Any] | None = None,
        context: Any = None,
    ) -> None:
        """Remove listeners.

        With no arguments every listener is removed. Otherwise a listener
        is removed when it matches every criterion given.
        """
        if events is None and callback is None and context is None:
            self._handlers.clear()
            return

        names = list(self._handlers) if events is None else _names(events)
        for name in names:
            handlers = self._handlers.get(name)
            if not handlers:
                continue
            kept = [
                h
                for h in handlers
                if (callback is not None and h.callback != callback)
                or (context is not None and h.context is not context)
            ]
            if kept:
                self._handlers[name] = kept
            else:
                del self._handlers[name]

    def trigger(self, event: str | PileEvent, *args: Any) -> None:
        """Call the listeners of ``event`` and then the ``"all"`` listeners."""
        for name in _names(event):
            handlers = list(self._handlers.get(name, ()))
            catch_all = (
                list(self._handlers.get(ALL, ())) if name != ALL else []
            )
            for handler in handlers:
                self._fire(name, handler, args)
            for handler in catch_all:
                self._fire(ALL, handler, (name, *args))

    def listeners(self, event: str | PileEvent | None = None) -> list[Callable]:
        """Return the callbacks subscribed to ``event`` (or to anything)."""
        if event is None:
            return [h.callback for hs in self._handlers.values() for h in hs]
        return [
            h.callback
            for name in _names(event)
            for h in self._handlers.get(name, ())
        ]

    def _fire(self, name: str, handler: _Handler, args: tuple) -> None:
        if handler.once and not self._discard(name, handler):
            return
        handler.callback(*args)

    def _discard(self, name: str, handler: _Handler) -> bool:
        handlers = self._handlers.get(name, [])
        for i, h in enumerate(handlers):
            if h is handler:
                del handlers[i]
                if not handlers:
                    del self._handlers[name]
                return True
        return False
