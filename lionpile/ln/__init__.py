from ._sentinel import Undefined, UndefinedType, is_undefined
from ._utils import json_dumpb, json_dumps, positional_arity

__all__ = (
    "Undefined",
    "UndefinedType",
    "is_undefined",
    "json_dumpb",
    "json_dumps",
    "positional_arity",
)
