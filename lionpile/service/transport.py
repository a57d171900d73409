# Copyright (c) 2023-2025, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""Transport collaborators used by the pile sync facade.

A transport is any callable ``sync(method, target, options)``. It reports
the outcome later (or immediately) through two continuations stored in
``options``: ``options["success"](response)`` and
``options["error"](failure)``. Piles and records never inspect how the
request is carried out.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable, Iterable, Mapping
from enum import Enum
from functools import partial
from typing import Any, Protocol

from lionpile._errors import TransportError
from lionpile.config import settings
from lionpile.protocols._concepts import RecordLike
from lionpile.protocols.generic.events import PileEvent

__all__ = (
    "ErrorWrapper",
    "MemoryStore",
    "SyncFn",
    "SyncMethod",
    "wrap_error",
)

logger = logging.getLogger(__name__)


class SyncMethod(str, Enum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    PATCH = "patch"


class SyncFn(Protocol):
    def __call__(
        self, method: str, target: Any, options: dict[str, Any], /
    ) -> Any: ...


ErrorWrapper = Callable[
    [Callable[..., Any] | None, Any, dict[str, Any]], Callable[[Any], None]
]


def wrap_error(
    on_error: Callable[..., Any] | None,
    target: Any,
    options: dict[str, Any],
) -> Callable[[Any], None]:
    """Build the error continuation handed to a transport.

    The failure is normalized to `TransportError`, then passed to
    ``on_error(target, error, options)``. Without ``on_error`` the failure
    is logged and an ``error`` event is triggered on ``target``.
    """

    def _error(failure: Any) -> None:
        error = TransportError.from_failure(failure)
        if on_error is not None:
            on_error(target, error, options)
            return
        logger.warning(
            "Unhandled transport failure for %r: %s", target, error.message
        )
        target.trigger(PileEvent.ERROR, target, error, options)

    return _error


class MemoryStore:
    """In-process transport keeping rows in a dict keyed by persisted id.

    Reads on a pile return every row in insertion order; reads, updates,
    patches and deletes on a record address the row under its id. Creates
    assign the next integer id when the record has none.

    With ``deferred=True`` continuations are queued and only run by
    `flush`, which is how a network transport behaves.

    Example::

        store = MemoryStore([{"id": 1, "title": "a"}])
        pile = Pile(sync=store)
        pile.fetch()
        assert pile.get(1).get("title") == "a"
    """

    def __init__(
        self,
        rows: Iterable[Mapping[str, Any]] = (),
        *,
        id_attribute: str | None = None,
        deferred: bool = False,
    ) -> None:
        self.id_attribute = id_attribute or settings.ID_ATTRIBUTE
        self.deferred = deferred
        self.rows: dict[Any, dict[str, Any]] = {}
        self.calls: list[tuple[SyncMethod, Any]] = []
        self.pending: deque[Callable[[], None]] = deque()
        self._last_id = 0
        self._failure: Any = None
        for row in rows:
            self._insert(dict(row))

    def __call__(
        self, method: str, target: Any, options: dict[str, Any], /
    ) -> None:
        method = SyncMethod(method)
        self.calls.append((method, target))

        if self._failure is not None:
            failure, self._failure = self._failure, None
            outcome = partial(self._settle, options.get("error"), failure)
        else:
            try:
                response = self._handle(method, target, options)
            except TransportError as e:
                outcome = partial(self._settle, options.get("error"), e)
            else:
                outcome = partial(self._settle, options.get("success"), response)

        if self.deferred:
            self.pending.append(outcome)
        else:
            outcome()

    def fail_next(self, failure: Any) -> None:
        """Make the next request fail with ``failure``."""
        self._failure = failure

    def flush(self) -> int:
        """Run queued continuations, including ones queued while flushing."""
        count = 0
        while self.pending:
            self.pending.popleft()()
            count += 1
        return count

    @staticmethod
    def _settle(continuation: Callable[[Any], Any] | None, value: Any) -> None:
        if continuation is not None:
            continuation(value)

    def _handle(
        self, method: SyncMethod, target: Any, options: dict[str, Any]
    ) -> Any:
        if not isinstance(target, RecordLike):
            if method is not SyncMethod.READ:
                raise TransportError(
                    f"Method {method.value!r} is not supported on a pile.",
                    status_code=405,
                )
            return [dict(row) for row in self.rows.values()]

        payload = options.get("attrs") or target.to_dict()
        if method is SyncMethod.CREATE:
            return dict(self._insert(dict(payload)))

        row = self.rows.get(target.id)
        if row is None:
            raise TransportError(
                "Record not found.",
                details={"id": target.id},
                status_code=404,
            )
        match method:
            case SyncMethod.READ:
                return dict(row)
            case SyncMethod.UPDATE:
                row.clear()
                row.update(payload)
                return dict(row)
            case SyncMethod.PATCH:
                row.update(payload)
                return dict(row)
            case SyncMethod.DELETE:
                del self.rows[target.id]
                return {}

    def _insert(self, row: dict[str, Any]) -> dict[str, Any]:
        id_ = row.get(self.id_attribute)
        if id_ is None:
            self._last_id += 1
            while self._last_id in self.rows:
                self._last_id += 1
            id_ = row[self.id_attribute] = self._last_id
        elif isinstance(id_, int):
            self._last_id = max(self._last_id, id_)
        self.rows[id_] = row
        return row
