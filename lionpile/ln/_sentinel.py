from __future__ import annotations

from typing import Any, Final, Literal

__all__ = (
    "Undefined",
    "UndefinedType",
    "is_undefined",
)


class UndefinedType:
    """Sentinel for an attribute entirely missing from a record.

    Distinct from ``None``: a record may hold ``None`` as a real value, and
    ``where({"x": None})`` must not match records that never had ``x``.
    """

    __slots__ = ()
    _instance: UndefinedType | None = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> Literal[False]:
        return False

    def __repr__(self) -> Literal["Undefined"]:
        return "Undefined"

    def __deepcopy__(self, memo):
        return self

    def __copy__(self):
        return self

    def __reduce__(self):
        return "Undefined"


Undefined: Final = UndefinedType()


def is_undefined(value: Any) -> bool:
    return value is Undefined
