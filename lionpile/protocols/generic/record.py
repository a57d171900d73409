# Copyright (c) 2023-2025, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import copy
import itertools
from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import Any, ClassVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from lionpile._errors import InvalidStateError
from lionpile.config import settings
from lionpile.ln import Undefined, json_dumps
from lionpile.service.transport import SyncFn, SyncMethod, wrap_error

from .._concepts import Observable, RecordLike
from .events import Emitter, PileEvent

__all__ = ("Record",)

_cid_counter = itertools.count(1)


def _next_cid() -> str:
    return f"{settings.CID_PREFIX}{next(_cid_counter)}"


class Record(Observable):
    """A mutable bag of attributes that reports its own changes.

    Each record gets a session id (``cid``) at construction, unique within
    the process and never reused. The persisted id lives in the attribute
    named by ``id_attribute`` and stays None until a backing store assigns
    one.

    Subclasses customise behaviour through class attributes:

    - ``defaults``: attributes every new record starts with.
    - ``schema``: a pydantic model; the default `validate` checks the full
      attribute mapping against it.
    - ``id_attribute``: name of the persisted id attribute.

    Events (listener arguments in parentheses):

    - ``change:<key>`` (record, value, options) per changed attribute;
      ``value`` is None for unset attributes.
    - ``change`` (record, options) once per outermost `set`.
    - ``error`` (record, error, options) on failed validation or transport.
    - ``destroyed`` (record, collection, options) from `destroy`.
    - ``sync`` (record, response, options) after a transport success.
    """

    id_attribute: ClassVar[str] = settings.ID_ATTRIBUTE
    defaults: ClassVar[Mapping[str, Any]] = {}
    schema: ClassVar[type[BaseModel] | None] = None

    def __init__(
        self,
        attributes: Mapping[str, Any] | None = None,
        *,
        collection: Any = None,
        sync: SyncFn | None = None,
        parse: bool = False,
    ) -> None:
        self.events = Emitter()
        self.cid = _next_cid()
        self.collection = collection
        self._sync = sync
        self._attributes: dict[str, Any] = {}
        self._previous_attributes: dict[str, Any] = {}
        self._changing = False

        attrs = dict(attributes or {})
        if parse:
            attrs = dict(self.parse(attrs) or {})
        self.set({**copy.deepcopy(dict(self.defaults)), **attrs}, silent=True)
        self._previous_attributes = dict(self._attributes)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(cid={self.cid!r}, id={self.id!r})"

    @property
    def id(self) -> Any:
        return self._attributes.get(self.id_attribute)

    @property
    def attributes(self) -> Mapping[str, Any]:
        """Read-only view of the current attributes."""
        return MappingProxyType(self._attributes)

    def get(self, key: str, default: Any = None) -> Any:
        return self._attributes.get(key, default)

    def has(self, key: str) -> bool:
        return self._attributes.get(key) is not None

    def set(
        self,
        attributes: Mapping[str, Any] | RecordLike | None,
        /,
        *,
        unset: bool = False,
        silent: bool = False,
        **options: Any,
    ) -> bool:
        """Update attributes and announce what changed.

        Args:
            attributes: New values, or another record whose attributes are
                copied.
            unset: Remove the given keys instead of assigning them.
            silent: Skip validation and change events.
            **options: Passed through to validation errors and events.

        Returns:
            bool: False if validation failed and nothing was applied.
        """
        if isinstance(attributes, RecordLike):
            attributes = attributes.to_dict()
        attrs = dict(attributes or {})
        if not attrs:
            return True

        if not silent:
            candidate = dict(self._attributes)
            if unset:
                for key in attrs:
                    candidate.pop(key, None)
            else:
                candidate.update(attrs)
            if not self._run_validation(candidate, options):
                return False

        changing = self._changing
        self._changing = True
        try:
            if not changing:
                self._previous_attributes = dict(self._attributes)

            changes: list[tuple[str, Any]] = []
            for key, value in attrs.items():
                current = self._attributes.get(key, Undefined)
                if unset:
                    if current is Undefined:
                        continue
                    del self._attributes[key]
                    changes.append((key, None))
                elif current is Undefined or current != value:
                    self._attributes[key] = value
                    changes.append((key, value))

            if not silent:
                for key, value in changes:
                    self.trigger(f"change:{key}", self, value, options)
                if not changing and self.has_changed():
                    self.trigger(PileEvent.CHANGE, self, options)
        finally:
            if not changing:
                self._changing = False
        return True

    def unset(self, key: str, /, **options: Any) -> bool:
        return self.set({key: None}, unset=True, **options)

    def clear(self, **options: Any) -> bool:
        """Remove every attribute."""
        return self.set(dict.fromkeys(self._attributes), unset=True, **options)

    def previous(self, key: str) -> Any:
        """Value of ``key`` before the latest outermost `set`."""
        return self._previous_attributes.get(key)

    def previous_attributes(self) -> dict[str, Any]:
        return dict(self._previous_attributes)

    def has_changed(self, key: str | None = None) -> bool:
        if key is not None:
            return self._attributes.get(key, Undefined) != (
                self._previous_attributes.get(key, Undefined)
            )
        return self._attributes != self._previous_attributes

    def changed_attributes(self) -> dict[str, Any]:
        """Attributes changed by the latest outermost `set`.

        Removed attributes map to None.
        """
        keys = self._attributes.keys() | self._previous_attributes.keys()
        return {
            key: self._attributes.get(key)
            for key in keys
            if self.has_changed(key)
        }

    def validate(self, attributes: Mapping[str, Any]) -> Any:
        """Return None when ``attributes`` are acceptable, else an error.

        Without a ``schema`` everything is accepted. Override for custom
        rules; any non-None return value is treated as the error.
        """
        if self.schema is None:
            return None
        try:
            self.schema.model_validate(dict(attributes))
        except PydanticValidationError as e:
            return e.errors(include_url=False)
        return None

    def is_valid(self) -> bool:
        return self.validate(self._attributes) is None

    def is_new(self) -> bool:
        return self.id is None

    def parse(self, response: Any) -> Any:
        """Turn a transport response into attributes. Identity by default."""
        return response

    def to_dict(self) -> dict[str, Any]:
        return dict(self._attributes)

    def to_json(self) -> str:
        return json_dumps(self.to_dict())

    def clone(self) -> Record:
        """A new record with the same attributes and a fresh cid."""
        return self.__class__(copy.deepcopy(self._attributes), sync=self._sync)

    def sync(self, method: str, target: Any, options: dict[str, Any]) -> Any:
        """Send a request through the injected transport, or the one of the
        owning collection.

        Raises:
            InvalidStateError: If no transport is reachable.
        """
        if self._sync is not None:
            return self._sync(method, target, options)
        if self.collection is not None and hasattr(self.collection, "sync"):
            return self.collection.sync(method, target, options)
        raise InvalidStateError(
            "No transport configured for record.", details={"cid": self.cid}
        )

    def fetch(
        self,
        *,
        success: Callable[..., Any] | None = None,
        error: Callable[..., Any] | None = None,
        **options: Any,
    ) -> Any:
        """Reload attributes from the transport."""

        def _success(response: Any) -> None:
            if not self.set(self.parse(response), **_plain(options)):
                return
            if success is not None:
                success(self, response, options)
            self.trigger(PileEvent.SYNC, self, response, options)

        options["success"] = _success
        options["error"] = wrap_error(error, self, options)
        return self.sync(SyncMethod.READ.value, self, options)

    def save(
        self,
        attributes: Mapping[str, Any] | None = None,
        /,
        *,
        wait: bool = False,
        patch: bool = False,
        success: Callable[..., Any] | None = None,
        error: Callable[..., Any] | None = None,
        **options: Any,
    ) -> Any:
        """Persist the record: ``create`` when new, else ``update``/``patch``.

        With ``wait`` the given attributes are applied only once the
        transport confirms. Attributes in the response are merged back,
        which is how a new record receives its persisted id.

        Returns:
            The transport's return value, or False if validation failed.
        """
        attrs = dict(attributes or {})
        if attrs and not wait:
            if not self.set(attrs, **options):
                return False
        elif not self._run_validation({**self._attributes, **attrs}, options):
            return False

        if self.is_new():
            method = SyncMethod.CREATE
        else:
            method = SyncMethod.PATCH if patch else SyncMethod.UPDATE
        if patch:
            options["attrs"] = attrs
        elif wait and attrs:
            options["attrs"] = {**self._attributes, **attrs}

        def _success(response: Any) -> None:
            server_attrs = self.parse(response)
            if wait:
                server_attrs = {**attrs, **(server_attrs or {})}
            if server_attrs and not self.set(server_attrs, **_plain(options)):
                return
            if success is not None:
                success(self, response, options)
            self.trigger(PileEvent.SYNC, self, response, options)

        options["success"] = _success
        options["error"] = wrap_error(error, self, options)
        return self.sync(method.value, self, options)

    def destroy(
        self,
        *,
        wait: bool = False,
        success: Callable[..., Any] | None = None,
        error: Callable[..., Any] | None = None,
        **options: Any,
    ) -> Any:
        """Delete the record and announce it with a ``destroyed`` event.

        Piles holding the record remove it when they see that event. A new
        record has nothing to delete, so no request is made for it.

        Returns:
            The transport's return value, or False for a new record.
        """

        def _destroyed() -> None:
            self.trigger(PileEvent.DESTROYED, self, self.collection, options)

        if self.is_new():
            _destroyed()
            return False

        def _success(response: Any) -> None:
            if wait:
                _destroyed()
            if success is not None:
                success(self, response, options)
            self.trigger(PileEvent.SYNC, self, response, options)

        options["success"] = _success
        options["error"] = wrap_error(error, self, options)
        result = self.sync(SyncMethod.DELETE.value, self, options)
        if not wait:
            _destroyed()
        return result

    def _run_validation(
        self, attributes: Mapping[str, Any], options: dict[str, Any]
    ) -> bool:
        err = self.validate(attributes)
        if err is None:
            return True
        self.trigger(PileEvent.ERROR, self, err, options)
        return False


def _plain(options: dict[str, Any]) -> dict[str, Any]:
    """Options without the transport continuations."""
    return {
        k: v for k, v in options.items() if k not in ("success", "error")
    }
