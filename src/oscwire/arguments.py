"""OSC addresses, argument type tags and the ``Argument`` value."""

import struct
from typing import Any, NamedTuple

from .errors import EncodingError
from .timetag import Timetag

INT32 = "i"
INT64 = "h"
TIMETAG = "t"
FLOAT32 = "f"
FLOAT64 = "d"
STRING = "s"
SYMBOL = "S"
BLOB = "b"
TRUE = "T"
FALSE = "F"
NULL = "N"
IMPULSE = "I"

ZERO_PAYLOAD_TAGS = frozenset((TRUE, FALSE, NULL, IMPULSE))
SUPPORTED_TAGS = frozenset(
    (INT32, INT64, TIMETAG, FLOAT32, FLOAT64, STRING, SYMBOL, BLOB)
) | ZERO_PAYLOAD_TAGS

_INT32_MIN, _INT32_MAX = -(2**31), 2**31 - 1
_INT64_MIN, _INT64_MAX = -(2**63), 2**63 - 1
_FLOAT32 = struct.Struct(">f")


def address_problem(address: str) -> str | None:
    """Describe what is wrong with an OSC address, or return ``None``.

    A valid address starts with ``/``, has no empty segment and no trailing
    slash.
    """
    if not address.startswith("/"):
        return "must start with '/'"
    if address.endswith("/"):
        return "must not end with '/'"
    if "//" in address:
        return "must not contain an empty segment"
    return None


class Infinitum:
    """The payload-less ``I`` argument (OSC "Impulse"/"Infinitum")."""

    __slots__ = ()
    _instance: "Infinitum | None" = None

    def __new__(cls) -> "Infinitum":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "INFINITUM"

    def __reduce__(self) -> str:
        return "INFINITUM"


INFINITUM = Infinitum()


class Argument(NamedTuple):
    """A single typed OSC argument.

    ``value`` is ``True``/``False``/``None``/``INFINITUM`` for the
    zero-payload tags ``T``/``F``/``N``/``I``.
    """

    tag: str
    value: Any = None

    @classmethod
    def of(cls, tag: str, value: Any = None) -> "Argument":
        """Build a checked argument; out-of-range values raise ``EncodingError``."""
        return cls(tag, check_value(tag, value))


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def check_value(tag: str, value: Any) -> Any:
    """Validate ``value`` against ``tag`` and return its canonical form."""
    if tag == TRUE:
        return True
    if tag == FALSE:
        return False
    if tag == NULL:
        return None
    if tag == IMPULSE:
        return INFINITUM
    if tag == INT32 or tag == INT64:
        if isinstance(value, bool) or not isinstance(value, int):
            raise EncodingError(f"tag {tag!r} needs an int, got {value!r}")
        low, high = (
            (_INT32_MIN, _INT32_MAX) if tag == INT32 else (_INT64_MIN, _INT64_MAX)
        )
        if not low <= value <= high:
            raise EncodingError(f"{value} out of range for tag {tag!r}")
        return value
    if tag == TIMETAG:
        if isinstance(value, Timetag):
            return value
        if isinstance(value, bool) or not isinstance(value, int):
            raise EncodingError(f"tag 't' needs a Timetag or int, got {value!r}")
        return Timetag(value)
    if tag == FLOAT32 or tag == FLOAT64:
        if not _is_number(value):
            raise EncodingError(f"tag {tag!r} needs a number, got {value!r}")
        if tag == FLOAT64:
            return float(value)
        # Keep the value the wire will carry.
        try:
            return _FLOAT32.unpack(_FLOAT32.pack(value))[0]
        except (OverflowError, struct.error) as exc:
            raise EncodingError(f"{value!r} out of range for tag 'f'") from exc
    if tag == STRING or tag == SYMBOL:
        if not isinstance(value, str):
            raise EncodingError(f"tag {tag!r} needs a str, got {value!r}")
        return value
    if tag == BLOB:
        if not isinstance(value, (bytes, bytearray, memoryview)):
            raise EncodingError(f"tag 'b' needs bytes, got {value!r}")
        return value
    raise EncodingError(f"unsupported type tag {tag!r}")


def infer_tag(value: Any) -> str:
    """Pick the type tag for a plain Python value."""
    if isinstance(value, (bytearray, bytes, memoryview)):
        return BLOB
    elif isinstance(value, str):
        return STRING
    elif isinstance(value, bool):
        return TRUE if value else FALSE
    elif isinstance(value, float):
        return FLOAT32
    elif isinstance(value, int):
        return INT32 if _INT32_MIN <= value <= _INT32_MAX else INT64
    elif value is None:
        return NULL
    elif isinstance(value, Infinitum):
        return IMPULSE
    elif isinstance(value, Timetag):
        return TIMETAG
    raise EncodingError("Cannot encode {!r}".format(value))


def normalize_typetags(typetags: str) -> str:
    """Strip an optional leading comma and reject unknown tags."""
    if typetags.startswith(","):
        typetags = typetags[1:]
    for tag in typetags:
        if tag not in SUPPORTED_TAGS:
            raise EncodingError(f"unsupported type tag {tag!r}")
    return typetags


def bind_arguments(typetags: str, values: tuple[Any, ...]) -> list[Argument]:
    """Pair a type-tag string with its values.

    Zero-payload tags consume no value, so ``bind_arguments("iTs", (1, "x"))``
    yields three arguments.
    """
    tags = normalize_typetags(typetags)
    payload_count = sum(1 for tag in tags if tag not in ZERO_PAYLOAD_TAGS)
    if payload_count != len(values):
        raise EncodingError(
            f"type tags {tags!r} expect {payload_count} values, got {len(values)}"
        )
    iterator = iter(values)
    result: list[Argument] = []
    for tag in tags:
        if tag in ZERO_PAYLOAD_TAGS:
            result.append(Argument.of(tag))
        else:
            result.append(Argument.of(tag, next(iterator)))
    return result
