# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

from typing import Any, ClassVar

__all__ = (
    "PileError",
    "ValidationError",
    "InvalidStateError",
    "TransportError",
)


class PileError(Exception):
    default_message: ClassVar[str] = "lionpile error"
    status_code: ClassVar[int] = 500
    __slots__ = ("message", "details")

    def __init__(
        self,
        message: str | None = None,
        *,
        details: dict[str, Any] | None = None,
        status_code: int | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message or self.default_message)
        if cause:
            self.__cause__ = cause
        self.message = message or self.default_message
        self.details = details or {}
        self.status_code = status_code or self.status_code

    def to_dict(self, *, include_cause: bool = False) -> dict[str, Any]:
        data = {
            "error": self.__class__.__name__,
            "message": self.message,
            "status_code": self.status_code,
            **({"details": self.details} if self.details else {}),
        }
        if include_cause and (cause := self.get_cause()):
            data["cause"] = repr(cause)
        return data

    def get_cause(self) -> Exception | None:
        """Get the cause of this error, if any."""
        return self.__cause__


class ValidationError(PileError):
    """A record failed validation while being admitted to a pile."""

    default_message = "Can't add an invalid record to a pile"
    status_code = 422
    __slots__ = ()

    @classmethod
    def from_record(
        cls,
        record: Any,
        error: Any,
        *,
        message: str | None = None,
        cause: Exception | None = None,
    ):
        details = {
            "cid": getattr(record, "cid", None),
            "error": error,
        }
        return cls(message=message, details=details, cause=cause)


class InvalidStateError(PileError):
    """Programming error: the operation is impossible in the current state."""

    default_message = "Invalid pile state"
    status_code = 500
    __slots__ = ()


class TransportError(PileError):
    """A transport call failed. Delivered to error continuations, never raised
    out of `fetch`."""

    default_message = "Transport failure"
    status_code = 502
    __slots__ = ()

    @classmethod
    def from_failure(cls, failure: Any, **extra: Any) -> "TransportError":
        if isinstance(failure, TransportError):
            return failure
        if isinstance(failure, Exception):
            return cls(str(failure) or None, details=extra, cause=failure)
        return cls(details={"response": failure, **extra})
