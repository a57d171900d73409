# Copyright (c) 2023-2025, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

from .events import ALL, Emitter, PileEvent
from .index import IdentityIndex
from .progression import Comparator, Progression
from .record import Record
from .pile import Pile

__all__ = (
    "ALL",
    "Comparator",
    "Emitter",
    "IdentityIndex",
    "Pile",
    "PileEvent",
    "Progression",
    "Record",
)
