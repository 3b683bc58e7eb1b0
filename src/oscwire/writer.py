"""Step-by-step OSC packet builder over a fixed-capacity buffer."""

from __future__ import annotations

import contextlib
import enum
from collections.abc import Iterator
from typing import Any

from .arguments import (
    BLOB,
    FALSE,
    FLOAT32,
    FLOAT64,
    IMPULSE,
    INT32,
    INT64,
    NULL,
    STRING,
    SYMBOL,
    TIMETAG,
    TRUE,
    Argument,
    address_problem,
    bind_arguments,
)
from .errors import EncodingError, OscError, StructuralError
from .primitives import BUNDLE_PREFIX, ByteWriter, BytesLike, pad
from .timetag import Timetag

DEFAULT_CAPACITY = 65536


class WriterState(enum.IntEnum):
    IDLE = 0
    BUNDLE = 1
    MESSAGE = 2
    COMPLETE = 3
    FAILED = 4


class OscWriter:
    """Builds one OSC packet (a message or a bundle tree) into a buffer.

    Messages are written with ``begin_message(address, nargs)``, one
    ``write_*`` call per argument, and ``end_message()``. The type-tag area
    is reserved up front, so ``nargs`` must match the number of arguments
    written. Bundles nest by calling ``begin_bundle()`` in place of a
    message; every element inside a bundle is framed by a length that is
    patched in when the element ends::

        writer = OscWriter(1024)
        writer.begin_bundle(Timetag.IMMEDIATELY)
        writer.write_message("/foo", "if", 1, 2.0)
        writer.end_bundle()
        datagram = writer.getvalue()

    Any error puts the writer in a failed state; call ``reset()`` to reuse
    its buffer.

    Args:
        buffer: Writable buffer, or an integer capacity.
        encoding: Text encoding for addresses and string arguments.
        validate_addresses: Reject addresses with empty segments or a
            trailing slash.
    """

    def __init__(
        self,
        buffer: bytearray | memoryview | int = DEFAULT_CAPACITY,
        *,
        encoding: str = "ascii",
        validate_addresses: bool = True,
    ) -> None:
        self._out = ByteWriter(buffer, encoding=encoding)
        self._validate_addresses = validate_addresses
        self.reset()

    def __repr__(self) -> str:
        state = self._state.name
        return f"<OscWriter {state} {self._out.position}/{self._out.capacity}>"

    def reset(self) -> None:
        """Discard everything written and start a new packet in the same buffer."""
        self._out.clear()
        self._state = WriterState.IDLE
        # (length placeholder offset or None, element start) per open bundle
        self._bundles: list[tuple[int | None, int]] = []
        self._message_length_offset: int | None = None
        self._message_start = 0
        self._type_position = 0
        self._nargs = 0
        self._count = 0

    @property
    def state(self) -> WriterState:
        return self._state

    @property
    def position(self) -> int:
        return self._out.position

    @property
    def depth(self) -> int:
        """Number of bundles currently open."""
        return len(self._bundles)

    def getvalue(self) -> bytes:
        """Return the finished packet."""
        if self._state is not WriterState.COMPLETE:
            raise StructuralError(f"packet is not complete ({self._state.name})")
        return self._out.getvalue()

    @contextlib.contextmanager
    def _step(self, *allowed: WriterState) -> Iterator[None]:
        if self._state is WriterState.FAILED:
            raise StructuralError("writer failed earlier; reset() it before reuse")
        if self._state not in allowed:
            state, self._state = self._state, WriterState.FAILED
            raise StructuralError(f"operation not allowed in state {state.name}")
        try:
            yield
        except OscError:
            self._state = WriterState.FAILED
            raise

    # -- Bundles ---------------------------------------------------------------

    def begin_bundle(self, timetag: Timetag | int = Timetag.IMMEDIATELY) -> None:
        """Open a bundle, at the top level or nested in the current bundle."""
        with self._step(WriterState.IDLE, WriterState.BUNDLE):
            if not isinstance(timetag, Timetag):
                timetag = Timetag(timetag)
            nested = self._state is WriterState.BUNDLE
            self._out.ensure(len(BUNDLE_PREFIX) + 8 + (4 if nested else 0))
            length_offset = self._out.reserve(4) if nested else None
            self._bundles.append((length_offset, self._out.position))
            self._out.write_bytes(BUNDLE_PREFIX)
            self._out.write_uint64(timetag.value)
            self._state = WriterState.BUNDLE

    def end_bundle(self) -> None:
        """Close the innermost open bundle."""
        with self._step(WriterState.BUNDLE):
            length_offset, start = self._bundles.pop()
            if length_offset is not None:
                self._out.patch_int32(length_offset, self._out.position - start)
            if not self._bundles:
                self._state = WriterState.COMPLETE

    # -- Messages --------------------------------------------------------------

    def _encode_address(self, address: str) -> bytes:
        if self._validate_addresses:
            problem = address_problem(address)
            if problem is not None:
                raise EncodingError(f"invalid address {address!r}: {problem}")
        return self._out.encode_string(address)

    def begin_message(self, address: str, nargs: int) -> None:
        """Write ``address`` and reserve room for ``nargs`` type tags."""
        with self._step(WriterState.IDLE, WriterState.BUNDLE):
            if nargs < 0:
                raise EncodingError(f"nargs must be positive, got {nargs}")
            raw_address = self._encode_address(address)
            in_bundle = self._state is WriterState.BUNDLE
            tag_area = pad(nargs + 2)
            self._out.ensure(
                pad(len(raw_address) + 1) + tag_area + (4 if in_bundle else 0)
            )
            self._message_length_offset = self._out.reserve(4) if in_bundle else None
            self._message_start = self._out.position
            self._out.write_string(address)
            type_area = self._out.reserve(tag_area)
            self._out.patch(type_area, b",")
            self._type_position = type_area + 1
            self._nargs = nargs
            self._count = 0
            self._state = WriterState.MESSAGE

    def write_untyped_message(
        self, address: str, raw_arguments: BytesLike = b""
    ) -> None:
        """Write a legacy message with no type-tag string.

        ``raw_arguments`` is copied verbatim after the address and must
        already be padded to a multiple of four.
        """
        with self._step(WriterState.IDLE, WriterState.BUNDLE):
            try:
                data = memoryview(raw_arguments).cast("B")
            except TypeError as exc:
                raise EncodingError(
                    f"raw arguments must be bytes-like, got {raw_arguments!r}"
                ) from exc
            if len(data) % 4:
                raise EncodingError(f"raw arguments of {len(data)} bytes are unpadded")
            if len(data) and data[0] == ord(","):
                raise EncodingError("raw arguments cannot start with ','")
            raw_address = self._encode_address(address)
            in_bundle = self._state is WriterState.BUNDLE
            self._out.ensure(
                pad(len(raw_address) + 1) + len(data) + (4 if in_bundle else 0)
            )
            length_offset = self._out.reserve(4) if in_bundle else None
            start = self._out.position
            self._out.write_string(address)
            self._out.write_bytes(data)
            if length_offset is not None:
                self._out.patch_int32(length_offset, self._out.position - start)
            else:
                self._state = WriterState.COMPLETE

    def end_message(self) -> None:
        with self._step(WriterState.MESSAGE):
            if self._count != self._nargs:
                raise EncodingError(
                    f"message declared {self._nargs} arguments, got {self._count}"
                )
            if self._message_length_offset is not None:
                self._out.patch_int32(
                    self._message_length_offset,
                    self._out.position - self._message_start,
                )
                self._state = WriterState.BUNDLE
            else:
                self._state = WriterState.COMPLETE

    def _argument(self) -> contextlib.AbstractContextManager[None]:
        if self._state is WriterState.MESSAGE and self._count >= self._nargs:
            self._state = WriterState.FAILED
            raise EncodingError(f"message declared only {self._nargs} arguments")
        return self._step(WriterState.MESSAGE)

    def _tag(self, tag: str) -> None:
        self._out.patch(self._type_position + self._count, tag.encode("ascii"))
        self._count += 1

    def write_int32(self, value: int) -> None:
        with self._argument():
            self._out.write_int32(Argument.of(INT32, value).value)
            self._tag(INT32)

    def write_int64(self, value: int) -> None:
        with self._argument():
            self._out.write_int64(Argument.of(INT64, value).value)
            self._tag(INT64)

    def write_timetag(self, value: Timetag | int) -> None:
        with self._argument():
            self._out.write_uint64(Argument.of(TIMETAG, value).value.value)
            self._tag(TIMETAG)

    def write_float32(self, value: float) -> None:
        with self._argument():
            self._out.write_float32(Argument.of(FLOAT32, value).value)
            self._tag(FLOAT32)

    def write_float64(self, value: float) -> None:
        with self._argument():
            self._out.write_float64(Argument.of(FLOAT64, value).value)
            self._tag(FLOAT64)

    def write_string(self, value: str) -> None:
        with self._argument():
            self._out.write_string(value)
            self._tag(STRING)

    def write_symbol(self, value: str) -> None:
        with self._argument():
            self._out.write_string(value)
            self._tag(SYMBOL)

    def write_blob(self, value: BytesLike) -> None:
        with self._argument():
            self._out.write_blob(value)
            self._tag(BLOB)

    def write_true(self) -> None:
        with self._argument():
            self._tag(TRUE)

    def write_false(self) -> None:
        with self._argument():
            self._tag(FALSE)

    def write_null(self) -> None:
        with self._argument():
            self._tag(NULL)

    def write_infinitum(self) -> None:
        with self._argument():
            self._tag(IMPULSE)

    def write_argument(self, argument: Argument) -> None:
        """Write one ``Argument``, dispatching on its tag."""
        tag, value = argument
        if tag == TRUE:
            self.write_true()
        elif tag == FALSE:
            self.write_false()
        elif tag == NULL:
            self.write_null()
        elif tag == IMPULSE:
            self.write_infinitum()
        elif tag == INT32:
            self.write_int32(value)
        elif tag == INT64:
            self.write_int64(value)
        elif tag == TIMETAG:
            self.write_timetag(value)
        elif tag == FLOAT32:
            self.write_float32(value)
        elif tag == FLOAT64:
            self.write_float64(value)
        elif tag == STRING:
            self.write_string(value)
        elif tag == SYMBOL:
            self.write_symbol(value)
        elif tag == BLOB:
            self.write_blob(value)
        else:
            self._state = WriterState.FAILED
            raise EncodingError(f"unsupported type tag {tag!r}")

    def write_arguments(self, address: str, arguments: list[Argument]) -> None:
        """Write a whole message from already-typed arguments."""
        for argument in arguments:
            if argument.tag in (STRING, SYMBOL):
                # surface encoding problems before anything is written
                self._out.encode_string(argument.value)
        self.begin_message(address, len(arguments))
        for argument in arguments:
            self.write_argument(argument)
        self.end_message()

    def write_message(self, address: str, typetags: str, *args: Any) -> None:
        """Write a whole message from a type-tag string and its values.

        Zero-payload tags (``T F N I``) take no value from ``args``.
        """
        if self._state is WriterState.FAILED:
            raise StructuralError("writer failed earlier; reset() it before reuse")
        self.write_arguments(address, bind_arguments(typetags, args))


def encode_message(
    address: str,
    typetags: str,
    *args: Any,
    capacity: int = DEFAULT_CAPACITY,
    encoding: str = "ascii",
) -> bytes:
    """Encode a single message in one call."""
    writer = OscWriter(capacity, encoding=encoding)
    writer.write_message(address, typetags, *args)
    return writer.getvalue()
