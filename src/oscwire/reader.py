"""Bounds-checked, zero-copy readers for OSC messages and bundles."""

from __future__ import annotations

import enum
from collections.abc import Iterator

from .arguments import (
    BLOB,
    FLOAT32,
    FLOAT64,
    INT32,
    INT64,
    STRING,
    SYMBOL,
    TIMETAG,
    ZERO_PAYLOAD_TAGS,
    Argument,
    address_problem,
    check_value,
)
from .errors import EncodingError, StructuralError
from .primitives import BUNDLE_PREFIX, ByteReader, BytesLike
from .timetag import Timetag

BUNDLE_HEADER_SIZE = len(BUNDLE_PREFIX) + 8


class PacketType(enum.IntEnum):
    BUNDLE = 1
    MESSAGE = 2


def packet_type(data: BytesLike, start: int = 0, end: int | None = None) -> PacketType:
    """Classify ``data[start:end]`` as a message or a bundle.

    A packet must be at least four bytes long and a multiple of four; a
    leading ``#`` marks a bundle.
    """
    if end is None:
        end = len(data)
    length = end - start
    if length < 4 or length % 4:
        raise StructuralError(f"packet length {length} is not a positive multiple of 4")
    return PacketType.BUNDLE if data[start] == ord("#") else PacketType.MESSAGE


class MessageReader:
    """Forward-only view of one OSC message.

    The address and type tags are parsed on construction. Arguments are
    then consumed one at a time in tag order with ``next_argument()`` (or by
    iterating); there is no rewind, build a new reader to decode again.
    Untyped messages expose their argument bytes through the raw
    ``read_*`` methods instead.
    """

    def __init__(
        self,
        data: BytesLike,
        start: int = 0,
        end: int | None = None,
        *,
        encoding: str = "ascii",
        validate_address: bool = True,
    ) -> None:
        self._reader = ByteReader(data, start, end, encoding=encoding)
        self._address = self._reader.read_string()
        if validate_address:
            problem = address_problem(self._address)
            if problem is not None:
                raise StructuralError(f"invalid address {self._address!r}: {problem}")
        self._typetags: str | None = None
        self._tag_index = 0
        if self._reader.peek_byte() == ord(","):
            self._typetags = self._reader.read_string()[1:]

    def __repr__(self) -> str:
        return f"<MessageReader {self._address!r} typetags={self._typetags!r}>"

    @property
    def address(self) -> str:
        return self._address

    @property
    def typetags(self) -> str | None:
        """Type tags without the leading comma, or ``None`` for untyped messages."""
        return self._typetags

    @property
    def is_typed(self) -> bool:
        return self._typetags is not None

    @property
    def position(self) -> int:
        return self._reader.position

    @property
    def remaining(self) -> int:
        return self._reader.remaining

    def raw_arguments(self) -> memoryview:
        """The unread argument bytes, without consuming them."""
        reader = self._reader
        return memoryview(reader.data)[reader.position : reader.end]

    def next_tag(self) -> str | None:
        """Consume and return the next type tag, or ``None`` when exhausted."""
        if self._typetags is None:
            raise EncodingError(f"message {self._address!r} has no type tags")
        if self._tag_index >= len(self._typetags):
            return None
        tag = self._typetags[self._tag_index]
        self._tag_index += 1
        return tag

    def next_argument(self) -> Argument | None:
        """Decode the next argument, or return ``None`` when there are no more."""
        tag = self.next_tag()
        if tag is None:
            return None
        if tag in ZERO_PAYLOAD_TAGS:
            return Argument(tag, check_value(tag, None))
        if tag == INT32:
            value: object = self._reader.read_int32()
        elif tag == INT64:
            value = self._reader.read_int64()
        elif tag == TIMETAG:
            value = Timetag(self._reader.read_uint64())
        elif tag == FLOAT32:
            value = self._reader.read_float32()
        elif tag == FLOAT64:
            value = self._reader.read_float64()
        elif tag == STRING or tag == SYMBOL:
            value = self._reader.read_string()
        elif tag == BLOB:
            value = self._reader.read_blob()
        else:
            raise EncodingError(f"unsupported type tag {tag!r}")
        return Argument(tag, value)

    def __iter__(self) -> Iterator[Argument]:
        while True:
            argument = self.next_argument()
            if argument is None:
                return
            yield argument

    def arguments(self) -> list[Argument]:
        """Decode every remaining argument."""
        return list(self)

    # Raw reads, for untyped messages or after ``next_tag()``.

    def read_int32(self) -> int:
        return self._reader.read_int32()

    def read_int64(self) -> int:
        return self._reader.read_int64()

    def read_timetag(self) -> Timetag:
        return Timetag(self._reader.read_uint64())

    def read_float32(self) -> float:
        return self._reader.read_float32()

    def read_float64(self) -> float:
        return self._reader.read_float64()

    def read_string(self) -> str:
        return self._reader.read_string()

    def read_blob(self) -> memoryview:
        return self._reader.read_blob()


class BundleReader:
    """Walks the length-framed elements of one OSC bundle.

    The cookie and timetag are checked on construction. Elements are
    returned as ``memoryview`` slices of the input; pass them (or the
    offsets from ``next_element_bounds()``) to ``MessageReader`` or
    another ``BundleReader`` after checking ``packet_type()``.
    """

    def __init__(self, data: BytesLike, start: int = 0, end: int | None = None) -> None:
        self._reader = ByteReader(data, start, end)
        if self._reader.remaining < BUNDLE_HEADER_SIZE:
            raise StructuralError(
                f"bundle of {self._reader.remaining} bytes is shorter than its header"
            )
        if self._reader.remaining % 4:
            raise StructuralError("bundle length is not a multiple of 4")
        if bytes(self._reader.read_bytes(len(BUNDLE_PREFIX))) != BUNDLE_PREFIX:
            raise StructuralError("missing '#bundle' cookie")
        self._timetag = Timetag(self._reader.read_uint64())

    def __repr__(self) -> str:
        return f"<BundleReader {self._timetag!r} {self.position}/{self._reader.end}>"

    @property
    def timetag(self) -> Timetag:
        return self._timetag

    @property
    def position(self) -> int:
        return self._reader.position

    def next_element_bounds(self) -> tuple[int, int] | None:
        """Consume the next element and return its ``(start, end)`` offsets.

        Returns ``None`` once the cursor sits exactly on the bundle's end.
        """
        reader = self._reader
        if reader.at_end():
            return None
        if reader.remaining < 4:
            raise StructuralError(
                f"{reader.remaining} trailing bytes at offset {reader.position}"
            )
        length = reader.read_int32()
        if length < 4 or length % 4:
            raise StructuralError(
                f"element length {length} is not a positive multiple of 4"
            )
        if length > reader.remaining:
            raise StructuralError(
                f"element of {length} bytes overruns bundle "
                f"({reader.remaining} bytes left)"
            )
        start = reader.position
        reader.skip(length)
        return start, start + length

    def next_element(self) -> memoryview | None:
        bounds = self.next_element_bounds()
        if bounds is None:
            return None
        return memoryview(self._reader.data)[bounds[0] : bounds[1]]

    def element_bounds(self) -> list[tuple[int, int]]:
        """Offsets of every remaining element.

        The whole framing is checked before anything is returned, so a
        malformed bundle produces an exception and no elements.
        """
        result: list[tuple[int, int]] = []
        while True:
            bounds = self.next_element_bounds()
            if bounds is None:
                return result
            result.append(bounds)

    def elements(self) -> list[memoryview]:
        view = memoryview(self._reader.data)
        return [view[start:end] for start, end in self.element_bounds()]

    def __iter__(self) -> Iterator[memoryview]:
        return iter(self.elements())
