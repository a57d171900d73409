# Copyright (c) 2023 - 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .generic.events import Emitter, PileEvent

__all__ = (
    "Observable",
    "RecordLike",
)


class Observable:
    """Entities that emit named events.

    The listener registry lives in an `Emitter` owned by each instance;
    this base only forwards to it.
    """

    events: Emitter

    def on(
        self,
        events: str | PileEvent,
        callback: Callable[..., Any],
        context: Any = None,
    ) -> None:
        self.events.on(events, callback, context)

    def once(
        self,
        events: str | PileEvent,
        callback: Callable[..., Any],
        context: Any = None,
    ) -> None:
        self.events.once(events, callback, context)

    def off(
        self,
        events: str | PileEvent | None = None,
        callback: Callable[..., Any] | None = None,
        context: Any = None,
    ) -> None:
        self.events.off(events, callback, context)

    def trigger(self, event: str | PileEvent, *args: Any) -> None:
        self.events.trigger(event, *args)


@runtime_checkable
class RecordLike(Protocol):
    """Capabilities a pile needs from its members.

    Anything passing ``isinstance(obj, RecordLike)`` is admitted as is;
    plain mappings are turned into records by the pile's record type.
    """

    cid: str
    collection: Any
    id_attribute: str

    @property
    def id(self) -> Any: ...

    def get(self, key: str, default: Any = None) -> Any: ...

    def set(
        self, attributes: Mapping[str, Any], /, **options: Any
    ) -> bool: ...

    def previous(self, key: str) -> Any: ...

    def validate(self, attributes: Mapping[str, Any]) -> Any: ...

    def to_dict(self) -> dict[str, Any]: ...

    def on(
        self, events: str, callback: Callable[..., Any], context: Any = None
    ) -> None: ...

    def off(
        self,
        events: str | None = None,
        callback: Callable[..., Any] | None = None,
        context: Any = None,
    ) -> None: ...

    def trigger(self, event: str, *args: Any) -> None: ...
