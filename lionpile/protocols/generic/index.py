# Copyright (c) 2023-2025, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
from collections.abc import Hashable
from typing import TYPE_CHECKING, Any

from lionpile._errors import InvalidStateError

if TYPE_CHECKING:
    from .._concepts import RecordLike

__all__ = ("IdentityIndex",)

logger = logging.getLogger(__name__)


class IdentityIndex:
    """Two-way O(1) lookup of pile members.

    Every member has exactly one entry under its session id (``cid``).
    Members with a non-null persisted id also have one entry under that
    id. Identifiers are used as plain dict keys, so ``1`` and ``"1"`` are
    different ids.
    """

    __slots__ = ("_by_id", "_by_cid", "_id_of")

    def __init__(self) -> None:
        self._by_id: dict[Hashable, RecordLike] = {}
        self._by_cid: dict[str, RecordLike] = {}
        self._id_of: dict[str, Hashable] = {}

    def __len__(self) -> int:
        return len(self._by_cid)

    def __contains__(self, cid: object) -> bool:
        return cid in self._by_cid

    def lookup_by_id(self, id_: Any) -> RecordLike | None:
        if id_ is None:
            return None
        return self._by_id.get(id_)

    def lookup_by_cid(self, cid: Any) -> RecordLike | None:
        if cid is None:
            return None
        return self._by_cid.get(cid)

    def register(self, record: RecordLike) -> None:
        """Index a record that is not yet a member.

        Raises:
            InvalidStateError: If the record's cid, or its non-null id, is
                already indexed.
        """
        cid, id_ = record.cid, record.id
        if cid in self._by_cid:
            raise InvalidStateError(
                "Session id is already indexed.", details={"cid": cid}
            )
        if id_ is not None and id_ in self._by_id:
            raise InvalidStateError(
                "Persisted id is already indexed.", details={"id": id_}
            )
        self._by_cid[cid] = record
        if id_ is not None:
            self._by_id[id_] = record
            self._id_of[cid] = id_

    def unregister(self, record: RecordLike) -> None:
        self._by_cid.pop(record.cid, None)
        id_ = self._id_of.pop(record.cid, None)
        if id_ is not None and self._by_id.get(id_) is record:
            del self._by_id[id_]

    def id_of(self, record: RecordLike) -> Any:
        """The id ``record`` is currently indexed under, or None."""
        return self._id_of.get(record.cid)

    def rekey(self, record: RecordLike, new_id: Any) -> None:
        """Move a member's id entry to ``new_id``.

        The entry removed is the one the index holds for the member, not
        whatever the record reports as its previous id, so repeated changes
        from nested listeners never leave a stale key behind. The cid entry
        is left alone. ``new_id`` may be None when the id is cleared.

        Raises:
            InvalidStateError: If ``new_id`` already belongs to another
                member. The index is unchanged in that case.
        """
        cid = record.cid
        if new_id is not None:
            holder = self._by_id.get(new_id)
            if holder is not None and holder is not record:
                raise InvalidStateError(
                    "Persisted id already belongs to another member.",
                    details={"id": new_id, "cid": cid},
                )
        old_id = self._id_of.pop(cid, None)
        if old_id is not None and self._by_id.get(old_id) is record:
            del self._by_id[old_id]
        if new_id is not None:
            self._by_id[new_id] = record
            self._id_of[cid] = new_id
        logger.debug("rekeyed %s: %r -> %r", cid, old_id, new_id)

    def clear(self) -> None:
        self._by_id.clear()
        self._by_cid.clear()
        self._id_of.clear()

    def ids(self) -> dict[Hashable, RecordLike]:
        """Snapshot of the persisted-id entries."""
        return dict(self._by_id)

    def cids(self) -> dict[str, RecordLike]:
        """Snapshot of the session-id entries."""
        return dict(self._by_cid)
