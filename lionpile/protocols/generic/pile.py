# Copyright (c) 2023-2025, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Iterable, Iterator, Mapping
from typing import Any, overload

from typing_extensions import Self

from lionpile._errors import InvalidStateError, ValidationError
from lionpile.config import settings
from lionpile.ln import Undefined, json_dumps, positional_arity
from lionpile.service.transport import (
    ErrorWrapper,
    SyncFn,
    SyncMethod,
    wrap_error,
)

from .._concepts import Observable, RecordLike
from .events import ALL, Emitter, PileEvent
from .index import IdentityIndex
from .progression import Comparator, Progression
from .record import Record

__all__ = ("Pile",)

logger = logging.getLogger(__name__)

RecordInput = RecordLike | Mapping[str, Any]


class Pile(Observable):
    """An ordered set of records indexed by persisted id and by cid.

    Order is insertion order, or comparator order when a ``comparator`` is
    set. Every member's events are re-emitted on the pile, so one listener
    on the pile sees ``change`` events of all members alongside the pile's
    own ``add``, ``remove``, ``reset`` and ``sync`` events.

    A record is a member of a pile at most once: inputs whose cid or
    non-null id is already present are dropped (or merged, with
    ``merge=True``) instead of raising.

    Subclasses may declare ``record_type`` and ``comparator`` as class
    attributes; constructor arguments override them per instance. A class
    level comparator may be a method (``def comparator(self, record)``), a
    lambda, a one-argument function, or a ``staticmethod``; a named
    two-argument comparison function needs ``staticmethod``.

    Args:
        records: Initial members, added silently.
        record_type: Class used to turn attribute mappings into records.
        comparator: One-argument sort key or two-argument comparison.
        sync: Transport used by `fetch`, `create` and member records.
        error_wrapper: Builds error continuations for the transport.
        parse: Run `parse` over ``records`` first.
    """

    record_type: type[Record] = Record
    comparator: Comparator | None = None

    def __init__(
        self,
        records: RecordInput | Iterable[RecordInput] | None = None,
        *,
        record_type: type[Record] | None = None,
        comparator: Comparator | None = None,
        sync: SyncFn | None = None,
        error_wrapper: ErrorWrapper | None = None,
        parse: bool = False,
    ) -> None:
        self.events = Emitter()
        if record_type is not None:
            self.record_type = record_type
        comparator = comparator if comparator is not None else self.comparator
        if comparator is not None:
            self.comparator = _plain_comparator(self, comparator)
        self._transport = sync
        self._wrap_error = error_wrapper or wrap_error
        self._reset()
        if records is not None:
            if parse:
                records = self.parse(records)
            self.reset(records, silent=True, parse=parse)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(size={self._length})"

    # ------------------------------------------------------------------
    # sequence protocol
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return self._length

    def __bool__(self) -> bool:
        """A pile is always truthy, even when empty."""
        return True

    def __iter__(self) -> Iterator[Record]:
        return iter(list(self._progression))

    @overload
    def __getitem__(self, key: int) -> Record: ...

    @overload
    def __getitem__(self, key: slice) -> list[Record]: ...

    def __getitem__(self, key: int | slice) -> Record | list[Record]:
        return self._progression[key]

    def __contains__(self, item: Any) -> bool:
        """Membership by record, cid, or persisted id."""
        return self._resolve(item) is not None

    @property
    def records(self) -> list[Record]:
        """Snapshot of the members in order."""
        return list(self._progression)

    # ------------------------------------------------------------------
    # mutation
    # ------------------------------------------------------------------

    def add(
        self,
        records: RecordInput | Iterable[RecordInput],
        /,
        *,
        at: int | None = None,
        merge: bool = False,
        silent: bool = False,
        **options: Any,
    ) -> Self:
        """Add one record or a list of records.

        Attribute mappings become records of ``record_type``; records are
        admitted as they are. Nothing is committed if any input fails
        validation.

        Args:
            records: A record, an attribute mapping, or a list of either.
            at: Insert at this position instead of appending. Skips the
                comparator sort.
            merge: Copy the attributes of duplicate inputs onto the member
                sharing their persisted id.
            silent: Do not emit ``add`` events.
            **options: Passed to record construction and to events.

        Raises:
            ValidationError: If an input is invalid or not record-like.
        """
        options.update(at=at, merge=merge, silent=silent)
        candidates = [
            self._prepare_record(item, options, claim=False)
            for item in self._as_list(records)
        ]

        cids: set[str] = set()
        ids: set[Any] = set()
        admitted: list[Record] = []
        duplicates: list[Record] = []
        for record in candidates:
            cid, id_ = record.cid, record.id
            if (
                cid in cids
                or cid in self._index
                or (
                    id_ is not None
                    and (id_ in ids or self._index.lookup_by_id(id_) is not None)
                )
            ):
                logger.debug("dropping duplicate %r from add", record)
                if (
                    record.collection is self
                    and self._index.lookup_by_cid(cid) is not record
                ):
                    record.collection = None
                duplicates.append(record)
                continue
            cids.add(cid)
            if id_ is not None:
                ids.add(id_)
            admitted.append(record)

        for record in admitted:
            if record.collection is None:
                record.collection = self
            record.on(ALL, self._on_record_event)
            self._index.register(record)

        self._length += len(admitted)
        if at is None:
            self._progression.insert_at(len(self._progression), admitted)
        else:
            self._progression.insert_at(at, admitted)

        if merge:
            for dup in duplicates:
                existing = self._index.lookup_by_id(dup.id)
                if existing is not None and existing is not dup:
                    existing.set(dup, **_event_options(options))

        if self.comparator is not None and at is None:
            self.sort(silent=True)

        self._verify()
        if silent or not admitted:
            return self

        added = {record.cid for record in admitted}
        for index, record in enumerate(list(self._progression)):
            if record.cid not in added or record.cid not in self._index:
                continue
            record.trigger(
                PileEvent.ADD, record, self, {**options, "index": index}
            )
        return self

    def remove(
        self,
        records: Any,
        /,
        *,
        silent: bool = False,
        **options: Any,
    ) -> Self:
        """Remove one or more members, given as records, cids or ids.

        Inputs that do not resolve to a member are ignored.
        """
        options["silent"] = silent
        for item in self._as_list(records):
            record = self._resolve(item)
            if record is None:
                continue
            index = self._progression.position_of(record)
            if index is None:
                raise InvalidStateError(
                    "Indexed record is missing from the sequence.",
                    details={"cid": record.cid},
                )
            self._index.unregister(record)
            self._progression.remove_at(index)
            self._length -= 1
            if not silent:
                record.trigger(
                    PileEvent.REMOVE, record, self, {**options, "index": index}
                )
            self._remove_reference(record)
        self._verify()
        return self

    def push(self, record: RecordInput, /, **options: Any) -> Record:
        """Append a record and return it."""
        record = self._prepare_record(record, options)
        self.add(record, **options)
        return record

    def pop(self, **options: Any) -> Record | None:
        """Remove and return the last member."""
        record = self.at(-1)
        if record is not None:
            self.remove(record, **options)
        return record

    def unshift(self, record: RecordInput, /, **options: Any) -> Record:
        """Insert a record at the front and return it."""
        record = self._prepare_record(record, options)
        options["at"] = 0
        self.add(record, **options)
        return record

    def shift(self, **options: Any) -> Record | None:
        """Remove and return the first member."""
        record = self.at(0)
        if record is not None:
            self.remove(record, **options)
        return record

    def reset(
        self,
        records: RecordInput | Iterable[RecordInput] | None = None,
        /,
        *,
        silent: bool = False,
        **options: Any,
    ) -> Self:
        """Replace every member at once.

        Emits a single ``reset`` event instead of per-record ``remove`` and
        ``add`` events. Every input is validated before the current members
        are let go, so an invalid input leaves the pile as it was.

        Raises:
            ValidationError: If an input is invalid or not record-like.
        """
        options.pop("at", None)
        prepared = [
            self._prepare_record(item, options, claim=False)
            for item in self._as_list(records if records is not None else [])
        ]
        for record in list(self._progression):
            self._remove_reference(record)
        self._reset()
        self.add(prepared, silent=True, **options)
        if not silent:
            self.trigger(PileEvent.RESET, self, {**options, "silent": silent})
        return self

    def sort(self, *, silent: bool = False, **options: Any) -> Self:
        """Re-sort by the comparator and emit ``reset``.

        Raises:
            InvalidStateError: If no comparator is configured.
        """
        self._progression.resort(self.comparator)
        if not silent:
            self.trigger(PileEvent.RESET, self, {**options, "silent": silent})
        return self

    # ------------------------------------------------------------------
    # lookup
    # ------------------------------------------------------------------

    def get(self, id_: Any) -> Record | None:
        """Member with the given persisted id.

        Accepts a raw id, a record, or a mapping carrying the id attribute.
        """
        if id_ is None:
            return None
        if isinstance(id_, RecordLike):
            id_ = id_.id
        elif isinstance(id_, Mapping):
            id_ = id_.get(self.record_type.id_attribute)
        try:
            return self._index.lookup_by_id(id_)
        except TypeError:
            return None

    def get_by_cid(self, cid: Any) -> Record | None:
        """Member with the given session id. Accepts a cid or a record."""
        if isinstance(cid, RecordLike):
            cid = cid.cid
        if not isinstance(cid, str):
            return None
        return self._index.lookup_by_cid(cid)

    def at(self, index: int) -> Record | None:
        """Member at ``index``; negative values count from the end."""
        try:
            return self._progression[index]
        except IndexError:
            return None

    def index_of(self, record: Any) -> int | None:
        return self._progression.position_of(record)

    def slice(self, begin: int | None = None, end: int | None = None) -> list[Record]:
        return self._progression[begin:end]

    def where(self, attributes: Mapping[str, Any]) -> list[Record]:
        """Members whose attributes equal every given key/value pair.

        An empty mapping matches nothing. A record lacking an attribute
        never matches it, not even against None.
        """
        if not attributes:
            return []
        return [
            record
            for record in self._progression
            if all(
                _matches(record.get(key, Undefined), value)
                for key, value in attributes.items()
            )
        ]

    def filter(self, predicate: Callable[[Record], bool]) -> list[Record]:
        return [record for record in self._progression if predicate(record)]

    def pluck(self, attribute: str) -> list[Any]:
        return [record.get(attribute) for record in self._progression]

    # ------------------------------------------------------------------
    # serialization
    # ------------------------------------------------------------------

    def parse(self, response: Any) -> Any:
        """Turn a transport response into record inputs. Identity by default."""
        return response

    def to_list(self) -> list[dict[str, Any]]:
        return [record.to_dict() for record in self._progression]

    def to_json(self) -> str:
        return json_dumps(self.to_list())

    def clone(self) -> Self:
        """A new pile of the same class sharing the current records."""
        return self.__class__(
            list(self._progression),
            record_type=self.record_type,
            comparator=self.comparator,
            sync=self._transport,
            error_wrapper=self._wrap_error,
        )

    # ------------------------------------------------------------------
    # sync facade
    # ------------------------------------------------------------------

    def sync(self, method: str, target: Any, options: dict[str, Any]) -> Any:
        """Forward a request to the transport.

        Raises:
            InvalidStateError: If the pile has no transport.
        """
        if self._transport is None:
            raise InvalidStateError("No transport configured for pile.")
        return self._transport(method, target, options)

    def fetch(
        self,
        *,
        add: bool = False,
        parse: bool = True,
        success: Callable[..., Any] | None = None,
        error: Callable[..., Any] | None = None,
        **options: Any,
    ) -> Any:
        """Load members from the transport.

        The response replaces the members (``reset``), or is added to them
        with ``add=True``. Failures reach ``error(pile, error, options)``
        and leave the pile untouched; they are never raised from here.
        """
        options["add"] = add
        options["parse"] = parse

        def _success(response: Any) -> None:
            records = self.parse(response) if parse else response
            event_options = {
                k: v
                for k, v in options.items()
                if k not in ("add", "success", "error")
            }
            if add:
                self.add(records if records is not None else [], **event_options)
            else:
                self.reset(records, **event_options)
            if success is not None:
                success(self, response, options)
            self.trigger(PileEvent.SYNC, self, response, options)

        options["success"] = _success
        options["error"] = self._wrap_error(error, self, options)
        return self.sync(SyncMethod.READ.value, self, options)

    def create(
        self,
        record: RecordInput,
        /,
        *,
        wait: bool = False,
        success: Callable[..., Any] | None = None,
        **options: Any,
    ) -> Record:
        """Build a record, add it, and save it through the transport.

        With ``wait`` the record joins the pile only after the transport
        confirms the save.

        Raises:
            ValidationError: If the record is invalid.
        """
        record = self._prepare_record(record, options)
        if not wait:
            self.add(record, **options)

        def _success(saved: Record, response: Any, save_options: dict) -> None:
            if wait:
                self.add(saved, **options)
            if success is not None:
                success(saved, response, save_options)

        record.save(None, wait=wait, success=_success, **options)
        return record

    # ------------------------------------------------------------------
    # integrity
    # ------------------------------------------------------------------

    def check_integrity(self) -> None:
        """Verify that count, sequence and both indexes agree.

        Raises:
            InvalidStateError: On the first inconsistency found.
        """
        members = list(self._progression)
        if len(members) != self._length:
            raise InvalidStateError(
                "Pile length diverged from its sequence.",
                details={"length": self._length, "sequence": len(members)},
            )
        cids = self._index.cids()
        if len(cids) != len(members) or any(
            cids.get(record.cid) is not record for record in members
        ):
            raise InvalidStateError("Session id index diverged from members.")
        with_id = [record for record in members if record.id is not None]
        ids = self._index.ids()
        if len(ids) != len(with_id) or any(
            ids.get(record.id) is not record for record in with_id
        ):
            raise InvalidStateError("Persisted id index diverged from members.")

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------

    def _reset(self) -> None:
        self._length = 0
        self._progression: Progression[Record] = Progression()
        self._index = IdentityIndex()

    def _verify(self) -> None:
        if settings.VERIFY_INTEGRITY:
            self.check_integrity()

    @staticmethod
    def _as_list(records: Any) -> list[Any]:
        if isinstance(records, Pile):
            return records.records
        if isinstance(records, (Mapping, RecordLike, str, bytes)):
            return [records]
        if isinstance(records, Iterable):
            return list(records)
        return [records]

    def _resolve(self, item: Any) -> Record | None:
        return self.get_by_cid(item) or self.get(item)

    def _prepare_record(
        self, item: RecordInput, options: dict[str, Any], claim: bool = True
    ) -> Record:
        """Return ``item`` as a validated record.

        Raises:
            ValidationError: If ``item`` is neither a record nor a mapping,
                or fails validation.
        """
        if isinstance(item, RecordLike):
            if claim and item.collection is None:
                item.collection = self
            return item
        if not isinstance(item, Mapping):
            raise ValidationError(
                f"Cannot add {type(item).__name__} to a pile; "
                "expected a record or a mapping of attributes.",
                details={"type": type(item).__name__},
            )
        record = self.record_type(
            item, collection=self, parse=bool(options.get("parse"))
        )
        err = record.validate(record.to_dict())
        if err is not None:
            record.trigger(PileEvent.ERROR, record, err, options)
            raise ValidationError.from_record(record, err)
        return record

    def _remove_reference(self, record: Record) -> None:
        if record.collection is self:
            record.collection = None
        record.off(ALL, self._on_record_event)

    def _on_record_event(self, event: str, *args: Any) -> None:
        """Relay a member's event onto the pile, keeping indexes current."""
        record = args[0] if args else None
        if event in (PileEvent.ADD.value, PileEvent.REMOVE.value):
            if len(args) < 2 or args[1] is not self:
                return
        if event == PileEvent.DESTROYED.value and record is not None:
            options = args[2] if len(args) > 2 and args[2] else {}
            self.remove(record, **_event_options(options))
        if (
            record is not None
            and event == f"change:{record.id_attribute}"
            and self.get_by_cid(record) is record
        ):
            self._rekey(record)
        self.trigger(event, *args)

    def _rekey(self, record: Record) -> None:
        """Re-index a member under its current id.

        On collision the member's id is restored, without events, to the one
        it is indexed under, so the pile stays consistent; the error is then
        re-raised to the caller of `set`.
        """
        try:
            self._index.rekey(record, record.id)
        except InvalidStateError:
            held = self._index.id_of(record)
            record.set(
                {record.id_attribute: held}, unset=held is None, silent=True
            )
            raise
        self._verify()


def _event_options(options: Mapping[str, Any]) -> dict[str, Any]:
    """Options safe to forward as keyword arguments to another mutation."""
    return {
        k: v
        for k, v in options.items()
        if k not in ("at", "merge", "silent", "index", "success", "error")
    }


def _matches(current: Any, expected: Any) -> bool:
    """Strict equality: ``True`` does not match ``1``, nor ``1`` match ``1.0``."""
    return (
        current is not Undefined
        and type(current) is type(expected)
        and current == expected
    )


def _plain_comparator(pile: Pile, comparator: Any) -> Comparator:
    """Unwrap a plain function that became a method of ``pile`` by being
    assigned on its class (``comparator = lambda r: ...``)."""
    if not inspect.ismethod(comparator) or comparator.__self__ is not pile:
        return comparator
    func = comparator.__func__
    if func.__name__ == "<lambda>" or positional_arity(comparator) == 0:
        return func
    return comparator
