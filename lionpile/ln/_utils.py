import inspect
from collections.abc import Callable
from typing import Any

import orjson

__all__ = (
    "json_dumpb",
    "json_dumps",
    "positional_arity",
)


def json_dumpb(obj: Any, *, sort_keys: bool = False) -> bytes:
    """Serialize to JSON bytes with orjson.

    Unknown types fall back to ``str`` so record attributes holding
    arbitrary objects still serialize.
    """
    option = orjson.OPT_NON_STR_KEYS
    if sort_keys:
        option |= orjson.OPT_SORT_KEYS
    return orjson.dumps(obj, default=str, option=option)


def json_dumps(obj: Any, *, sort_keys: bool = False) -> str:
    return json_dumpb(obj, sort_keys=sort_keys).decode("utf-8")


def positional_arity(func: Callable[..., Any]) -> int:
    """Count the required positional parameters of ``func``.

    Bound methods do not count ``self``. A callable taking ``*args`` is
    reported as two-argument, so it is treated as a comparison function.
    """
    try:
        sig = inspect.signature(func)
    except (TypeError, ValueError):
        return 1
    count = 0
    for param in sig.parameters.values():
        if param.kind in (
            inspect.Parameter.POSITIONAL_ONLY,
            inspect.Parameter.POSITIONAL_OR_KEYWORD,
        ) and param.default is inspect.Parameter.empty:
            count += 1
        elif param.kind is inspect.Parameter.VAR_POSITIONAL:
            return max(count, 2)
    return count
