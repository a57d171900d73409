# Copyright (c) 2023-2025, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import functools
from collections.abc import Callable, Iterable, Iterator
from typing import Any, Generic, TypeVar, overload

from lionpile._errors import InvalidStateError
from lionpile.ln import positional_arity

T = TypeVar("T")

__all__ = (
    "Comparator",
    "Progression",
)

Comparator = Callable[[Any], Any] | Callable[[Any, Any], int]


class Progression(Generic[T]):
    """Positional storage of pile members.

    Records are compared by identity, never with ``==``, so records that
    define value equality still occupy distinct positions.

    Attributes:
        order (list[T]): The records in their current order. Mutate it
            only through the methods below.
    """

    __slots__ = ("order",)

    def __init__(self, items: Iterable[T] = ()) -> None:
        self.order: list[T] = list(items)

    def __len__(self) -> int:
        """Returns the number of records in this progression."""
        return len(self.order)

    def __iter__(self) -> Iterator[T]:
        return iter(self.order)

    @overload
    def __getitem__(self, key: int) -> T: ...

    @overload
    def __getitem__(self, key: slice) -> list[T]: ...

    def __getitem__(self, key: int | slice) -> T | list[T]:
        """Gets one record by index, or a list of records by slice.

        Raises:
            TypeError: If `key` is neither an int nor a slice.
            IndexError: If an integer index is out of range.
        """
        if not isinstance(key, (int, slice)):
            key_cls = key.__class__.__name__
            raise TypeError(f"indices must be integers or slices, not {key_cls}")
        return self.order[key]

    def __repr__(self) -> str:
        return f"Progression(size={len(self.order)})"

    def insert_at(self, index: int, records: Iterable[T]) -> None:
        """Inserts ``records`` so the first one lands at ``index``.

        Args:
            index (int): Target position; values past the end append, and
                negative values count from the end like `list.insert`.
            records (Iterable[T]): Records to insert, in order.
        """
        self.order[index:index] = list(records)

    def append(self, record: T) -> None:
        self.order.append(record)

    def remove_at(self, index: int) -> T:
        """Removes and returns the record at ``index``.

        Raises:
            InvalidStateError: If nothing is stored at ``index``.
        """
        try:
            return self.order.pop(index)
        except IndexError as e:
            raise InvalidStateError(
                f"No record at position {index}.",
                details={"index": index, "size": len(self.order)},
                cause=e,
            ) from e

    def position_of(self, record: T) -> int | None:
        """Returns the position of ``record``, or None if absent."""
        for i, item in enumerate(self.order):
            if item is record:
                return i
        return None

    def resort(self, comparator: Comparator | None) -> None:
        """Re-derives the full order from ``comparator``.

        A one-argument comparator is a sort key; the sort is stable, so
        records with equal keys keep their relative order. A two-argument
        comparator is a comparison function returning a negative number,
        zero, or a positive number.

        Raises:
            InvalidStateError: If ``comparator`` is None.
        """
        if comparator is None:
            raise InvalidStateError("Cannot sort a pile without a comparator")
        if positional_arity(comparator) == 1:
            self.order = sorted(self.order, key=comparator)
        else:
            self.order.sort(key=functools.cmp_to_key(comparator))

    def clear(self) -> None:
        """Removes all records from the progression."""
        self.order.clear()
