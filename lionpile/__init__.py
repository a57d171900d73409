# Copyright (c) 2023-2025, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

from ._errors import InvalidStateError, PileError, TransportError, ValidationError
from .config import PileSettings, settings
from .protocols._concepts import Observable, RecordLike
from .protocols.generic import (
    ALL,
    Emitter,
    IdentityIndex,
    Pile,
    PileEvent,
    Progression,
    Record,
)
from .service import MemoryStore, SyncMethod, wrap_error

__version__ = "0.1.0"

__all__ = (
    "ALL",
    "Emitter",
    "IdentityIndex",
    "InvalidStateError",
    "MemoryStore",
    "Observable",
    "Pile",
    "PileError",
    "PileEvent",
    "PileSettings",
    "Progression",
    "Record",
    "RecordLike",
    "SyncMethod",
    "TransportError",
    "ValidationError",
    "settings",
    "wrap_error",
)
