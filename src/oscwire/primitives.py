"""Big-endian fixed-width values, padded strings and blobs.

``ByteWriter`` and ``ByteReader`` are the two cursors every other layer is
built on. Both check the space left before touching a byte: a writer that
runs out of room raises ``BoundsError`` with the buffer unchanged, a reader
raises before it would step past its declared end.
"""

import struct

from .errors import BoundsError, EncodingError

_INT32 = struct.Struct(">i")
_INT64 = struct.Struct(">q")
_UINT64 = struct.Struct(">Q")
_FLOAT32 = struct.Struct(">f")
_FLOAT64 = struct.Struct(">d")

BUNDLE_PREFIX = b"#bundle\x00"

BytesLike = bytes | bytearray | memoryview


def pad(length: int) -> int:
    """Round ``length`` up to the next multiple of four."""
    return (length + 3) & ~3


def _pack(packer: struct.Struct, value: object) -> bytes:
    try:
        return packer.pack(value)
    except struct.error as exc:
        raise EncodingError(f"cannot pack {value!r} as {packer.format}: {exc}") from exc


class ByteWriter:
    """Fixed-capacity, forward-only writer.

    Args:
        buffer: A writable ``bytearray`` / ``memoryview`` to fill, or an
            integer capacity for a fresh zeroed ``bytearray``.
        encoding: Text encoding for OSC strings.
    """

    __slots__ = ("_buffer", "_position", "encoding")

    def __init__(
        self, buffer: bytearray | memoryview | int, encoding: str = "ascii"
    ) -> None:
        if isinstance(buffer, int):
            if buffer < 0:
                raise ValueError(f"capacity must be positive, got {buffer}")
            buffer = bytearray(buffer)
        view = memoryview(buffer)
        if view.readonly:
            raise ValueError("ByteWriter needs a writable buffer")
        self._buffer = view.cast("B")
        self._position = 0
        self.encoding = encoding

    def __repr__(self) -> str:
        return f"<ByteWriter {self._position}/{self.capacity}>"

    @property
    def capacity(self) -> int:
        return len(self._buffer)

    @property
    def position(self) -> int:
        return self._position

    @property
    def remaining(self) -> int:
        return len(self._buffer) - self._position

    def clear(self) -> None:
        """Rewind to the start of the buffer; earlier bytes become garbage."""
        self._position = 0

    def getvalue(self) -> bytes:
        """Return a copy of everything written so far."""
        return self._buffer[: self._position].tobytes()

    def ensure(self, size: int) -> None:
        if size > self.remaining:
            raise BoundsError(
                f"write of {size} bytes exceeds capacity "
                f"({self.remaining} of {self.capacity} remaining)"
            )

    def _put(self, data: bytes | memoryview, size: int) -> None:
        # ``size`` includes trailing padding; the caller has already checked it.
        start = self._position
        self._buffer[start : start + len(data)] = data
        self._buffer[start + len(data) : start + size] = bytes(size - len(data))
        self._position = start + size

    def write_bytes(self, data: BytesLike) -> None:
        data = memoryview(data).cast("B")
        self.ensure(len(data))
        self._put(data, len(data))

    def write_int32(self, value: int) -> None:
        self.write_bytes(_pack(_INT32, value))

    def write_int64(self, value: int) -> None:
        self.write_bytes(_pack(_INT64, value))

    def write_uint64(self, value: int) -> None:
        self.write_bytes(_pack(_UINT64, value))

    def write_float32(self, value: float) -> None:
        self.write_bytes(_pack(_FLOAT32, value))

    def write_float64(self, value: float) -> None:
        self.write_bytes(_pack(_FLOAT64, value))

    def encode_string(self, value: str) -> bytes:
        """Encode ``value`` without its terminator, rejecting embedded NULs."""
        if not isinstance(value, str):
            raise EncodingError(f"expected str, got {type(value).__name__}")
        try:
            raw = value.encode(self.encoding)
        except UnicodeEncodeError as exc:
            raise EncodingError(f"cannot encode {value!r}: {exc}") from exc
        if b"\x00" in raw:
            raise EncodingError(f"OSC strings cannot contain NUL: {value!r}")
        return raw

    def write_string(self, value: str) -> None:
        raw = self.encode_string(value)
        size = pad(len(raw) + 1)
        self.ensure(size)
        self._put(raw, size)

    def write_blob(self, value: BytesLike) -> None:
        try:
            data = memoryview(value).cast("B")
        except TypeError as exc:
            raise EncodingError(f"blob must be bytes-like, got {value!r}") from exc
        header = _pack(_INT32, len(data))
        size = 4 + pad(len(data))
        self.ensure(size)
        self._put(header + data.tobytes(), size)

    def reserve(self, size: int) -> int:
        """Zero-fill ``size`` bytes and return their offset for later patching."""
        self.ensure(size)
        offset = self._position
        self._put(b"", size)
        return offset

    def patch(self, offset: int, data: bytes) -> None:
        """Overwrite already-written bytes at ``offset``."""
        if offset < 0 or offset + len(data) > self._position:
            raise BoundsError(f"patch at {offset} outside written region")
        self._buffer[offset : offset + len(data)] = data

    def patch_int32(self, offset: int, value: int) -> None:
        self.patch(offset, _pack(_INT32, value))


class ByteReader:
    """Forward-only reader over ``data[start:end]``.

    The input is never modified. ``bytes`` and ``bytearray`` inputs are not
    copied either: blobs come back as ``memoryview`` slices of them. Any
    other buffer (a ``memoryview``, an ``array``) is copied once into
    ``bytes``, and blobs then borrow that copy rather than the caller's
    buffer. Byte order is converted on every read.
    String scans stop at ``end``, so an unterminated string is reported as
    a ``BoundsError`` instead of reading into whatever follows.
    """

    __slots__ = ("_data", "_view", "_position", "_end", "encoding")

    def __init__(
        self,
        data: BytesLike,
        start: int = 0,
        end: int | None = None,
        encoding: str = "ascii",
    ) -> None:
        if not isinstance(data, (bytes, bytearray)):
            data = bytes(data)
        if end is None:
            end = len(data)
        if not 0 <= start <= end <= len(data):
            raise BoundsError(
                f"region [{start}:{end}] outside buffer of {len(data)} bytes"
            )
        self._data = data
        self._view = memoryview(data)
        self._position = start
        self._end = end
        self.encoding = encoding

    def __repr__(self) -> str:
        return f"<ByteReader {self._position}/{self._end}>"

    @property
    def data(self) -> bytes | bytearray:
        return self._data

    @property
    def position(self) -> int:
        return self._position

    @property
    def end(self) -> int:
        return self._end

    @property
    def remaining(self) -> int:
        return self._end - self._position

    def at_end(self) -> bool:
        return self._position == self._end

    def _require(self, size: int) -> int:
        if size > self.remaining:
            raise BoundsError(
                f"read of {size} bytes at offset {self._position} "
                f"past end {self._end}"
            )
        start = self._position
        self._position += size
        return start

    def peek_byte(self) -> int | None:
        """Return the next byte without consuming it, or ``None`` at the end."""
        if self._position >= self._end:
            return None
        return self._data[self._position]

    def skip(self, size: int) -> None:
        self._require(size)

    def read_bytes(self, size: int) -> memoryview:
        start = self._require(size)
        return self._view[start : start + size]

    def _unpack(self, packer: struct.Struct) -> object:
        start = self._require(packer.size)
        return packer.unpack_from(self._data, start)[0]

    def read_int32(self) -> int:
        return self._unpack(_INT32)  # type: ignore[return-value]

    def read_int64(self) -> int:
        return self._unpack(_INT64)  # type: ignore[return-value]

    def read_uint64(self) -> int:
        return self._unpack(_UINT64)  # type: ignore[return-value]

    def read_float32(self) -> float:
        return self._unpack(_FLOAT32)  # type: ignore[return-value]

    def read_float64(self) -> float:
        return self._unpack(_FLOAT64)  # type: ignore[return-value]

    def read_raw_string(self) -> memoryview:
        """Read a NUL-terminated, padded string and return its bytes."""
        terminator = self._data.find(b"\x00", self._position, self._end)
        if terminator < 0:
            raise BoundsError(f"unterminated string at offset {self._position}")
        length = terminator - self._position
        start = self._require(pad(length + 1))
        return self._view[start : start + length]

    def read_string(self) -> str:
        raw = self.read_raw_string()
        try:
            return str(raw, self.encoding)
        except UnicodeDecodeError as exc:
            raise EncodingError(f"cannot decode string: {exc}") from exc

    def read_blob(self) -> memoryview:
        length = self.read_int32()
        if length < 0:
            raise EncodingError(f"negative blob length {length}")
        start = self._require(pad(length))
        return self._view[start : start + length]
