# Copyright (c) 2023-2025, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

from .transport import ErrorWrapper, MemoryStore, SyncFn, SyncMethod, wrap_error

__all__ = (
    "ErrorWrapper",
    "MemoryStore",
    "SyncFn",
    "SyncMethod",
    "wrap_error",
)
