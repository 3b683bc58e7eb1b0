"""OSC messages and bundles as Python values.

``OscMessage`` and ``OscBundle`` sit on top of the fixed-capacity writer and
the zero-copy readers: they own their data, infer type tags from plain
Python values and nest recursively.
"""

import codecs
from collections.abc import Iterator, Sequence as SequenceABC
from dataclasses import dataclass
from typing import Any, Union

from .arguments import (
    BLOB,
    ZERO_PAYLOAD_TAGS,
    Argument,
    Infinitum,
    bind_arguments,
    infer_tag,
    normalize_typetags,
)
from .errors import EncodingError, StructuralError
from .primitives import BytesLike
from .reader import BundleReader, MessageReader, PacketType, packet_type
from .timetag import Timetag
from .writer import DEFAULT_CAPACITY, OscWriter

OscArgument = Union[
    bool, bytes, bytearray, float, int, str, Timetag, Infinitum, None
]
OscPacket = Union["OscMessage", "OscBundle"]


@dataclass(frozen=True)
class Options:
    """Codec configuration.

    Attributes:
        capacity: Size of the buffer used when encoding a packet. Encoding
            a larger packet raises ``BoundsError``.
        encoding: Text encoding for addresses and strings. OSC 1.0 strings
            are ASCII.
        max_depth: Deepest bundle nesting accepted when decoding.
        validate_addresses: Reject addresses with empty segments or a
            trailing slash, both when encoding and decoding.
    """

    capacity: int = DEFAULT_CAPACITY
    encoding: str = "ascii"
    max_depth: int = 32
    validate_addresses: bool = True

    def __post_init__(self) -> None:
        if self.capacity < 16:
            raise ValueError(f"capacity too small: {self.capacity}")
        if self.max_depth < 1:
            raise ValueError(f"max_depth must be at least 1, got {self.max_depth}")
        try:
            codecs.lookup(self.encoding)
        except LookupError as exc:
            raise ValueError(f"unknown encoding {self.encoding!r}") from exc

    def writer(self) -> OscWriter:
        return OscWriter(
            self.capacity,
            encoding=self.encoding,
            validate_addresses=self.validate_addresses,
        )


DEFAULT_OPTIONS = Options()


def _group_by_count(iterable: BytesLike, count: int) -> Iterator[list[int]]:
    """Split an iterable into chunks of ``count`` items."""
    result: list[int] = []
    for item in iterable:
        result.append(item)
        if len(result) == count:
            yield result
            result = []
    if result:
        yield result


def format_datagram(datagram: BytesLike) -> str:
    """Render a datagram as an offset / hex / ASCII dump."""
    datagram = bytes(datagram)
    result: list[str] = ["size {}".format(len(datagram))]
    for index in range(0, len(datagram), 16):
        hex_blocks = []
        ascii_block = ""
        for chunk in _group_by_count(datagram[index : index + 16], 4):
            ascii_block += "".join(
                chr(byte) if 31 < byte < 127 else "." for byte in chunk
            )
            hex_blocks.append(" ".join("{:02x}".format(byte) for byte in chunk))
        line = "{: >4}   ".format(index)
        line += "{: <53}".format("  ".join(hex_blocks))
        line += "|{}|".format(ascii_block)
        result.append(line)
    return "\n".join(result)


def _bind_contents(typetags: str, contents: tuple[Any, ...]) -> list[Argument]:
    tags = normalize_typetags(typetags)
    if len(tags) != len(contents):
        # Values for the zero-payload tags may be left out.
        return bind_arguments(tags, contents)
    arguments = []
    for tag, value in zip(tags, contents):
        argument = Argument.of(tag, value)
        if tag in ZERO_PAYLOAD_TAGS and value is not argument.value:
            raise EncodingError(f"value {value!r} does not fit tag {tag!r}")
        arguments.append(argument)
    return arguments


class OscMessage:
    """An Open Sound Control message with an address and typed arguments.

    Type tags are inferred from the contents unless ``typetags`` is given:
    ``bool`` becomes ``T``/``F``, ``int`` ``i`` (``h`` beyond 32 bits),
    ``float`` ``f``, ``str`` ``s``, bytes ``b``, ``None`` ``N``,
    ``INFINITUM`` ``I`` and ``Timetag`` ``t``.

    Args:
        address: OSC address (e.g. ``"/mixer/1/gain"``).
        contents: Argument values.
        typetags: Explicit type tags (``"if"`` or ``",if"``). Values for
            ``T``/``F``/``N``/``I`` may be omitted.
    """

    def __init__(
        self, address: str, *contents: OscArgument, typetags: str | None = None
    ) -> None:
        if not isinstance(address, str):
            raise ValueError(f"address must be str, got {address!r}")
        if typetags is None:
            arguments = [Argument.of(infer_tag(value), value) for value in contents]
        else:
            arguments = _bind_contents(typetags, contents)
        self.address = address
        self.typetags: str | None = "".join(argument.tag for argument in arguments)
        self.contents = tuple(
            bytes(argument.value) if argument.tag == BLOB else argument.value
            for argument in arguments
        )
        self.raw_arguments = b""

    @classmethod
    def untyped(cls, address: str, raw_arguments: BytesLike = b"") -> "OscMessage":
        """A legacy message without a type-tag string."""
        message = cls(address)
        message.typetags = None
        message.raw_arguments = bytes(raw_arguments)
        return message

    def __eq__(self, other: object) -> bool:
        if type(self) is not type(other):
            return False
        assert isinstance(other, OscMessage)
        if self.address != other.address:
            return False
        if self.typetags != other.typetags:
            return False
        if self.contents != other.contents:
            return False
        if self.raw_arguments != other.raw_arguments:
            return False
        return True

    def __repr__(self) -> str:
        return "{}({})".format(
            type(self).__name__,
            ", ".join(repr(_) for _ in [self.address, *self.contents]),
        )

    def __str__(self) -> str:
        return format_datagram(self.to_datagram())

    @property
    def is_typed(self) -> bool:
        return self.typetags is not None

    @property
    def arguments(self) -> list[Argument]:
        """The contents paired with their type tags."""
        return [
            Argument(tag, value)
            for tag, value in zip(self.typetags or "", self.contents)
        ]

    def write_to(self, writer: OscWriter) -> None:
        """Append this message to an in-progress writer."""
        if self.typetags is None:
            writer.write_untyped_message(self.address, self.raw_arguments)
        else:
            writer.write_arguments(self.address, self.arguments)

    def to_datagram(self, options: Options | None = None) -> bytes:
        """Encode this message to an OSC binary datagram."""
        writer = (options or DEFAULT_OPTIONS).writer()
        self.write_to(writer)
        return writer.getvalue()

    @classmethod
    def from_reader(cls, reader: MessageReader) -> "OscMessage":
        """Materialize the remaining contents of a ``MessageReader``.

        Raises ``StructuralError`` if bytes are left after the last tagged
        argument.
        """
        if not reader.is_typed:
            return cls.untyped(reader.address, reader.raw_arguments())
        arguments = reader.arguments()
        if reader.remaining:
            raise StructuralError(
                f"{reader.remaining} bytes after the arguments of {reader.address!r}"
            )
        return cls(
            reader.address,
            *(argument.value for argument in arguments),
            typetags="".join(argument.tag for argument in arguments),
        )

    @classmethod
    def from_datagram(
        cls, datagram: BytesLike, options: Options | None = None
    ) -> "OscMessage":
        """Decode an OSC binary datagram into an OscMessage."""
        packet = decode_packet(datagram, options)
        if not isinstance(packet, cls):
            raise StructuralError("datagram is not a message")
        return packet

    def to_list(self) -> list[Any]:
        """Convert to a nested list representation: ``[address, arg1, arg2, ...]``."""
        return [self.address, *self.contents]


class OscBundle:
    """A timetagged collection of OSC messages and/or nested bundles.

    Args:
        timestamp: A ``Timetag``, a Unix timestamp in seconds, or ``None``
            for immediate execution.
        contents: Sequence of ``OscMessage`` and/or ``OscBundle`` instances.
    """

    def __init__(
        self,
        timestamp: Timetag | float | None = None,
        *,
        contents: SequenceABC[OscPacket] = (),
    ) -> None:
        prototype = (OscMessage, type(self))
        for x in contents:
            if not isinstance(x, prototype):
                raise ValueError(contents)
        if timestamp is None:
            self.timetag = Timetag.IMMEDIATELY
        elif isinstance(timestamp, Timetag):
            self.timetag = timestamp
        else:
            self.timetag = Timetag.from_unix(timestamp)
        self.contents = tuple(contents)

    def __eq__(self, other: object) -> bool:
        if type(self) is not type(other):
            return False
        assert isinstance(other, OscBundle)
        if self.timetag != other.timetag:
            return False
        if self.contents != other.contents:
            return False
        return True

    def __repr__(self) -> str:
        parts = ["{}(".format(type(self).__name__)]
        if not self.timetag.is_immediate:
            parts.append(f"timestamp={self.timetag!r}")
            if self.contents:
                parts.append(", ")
        if self.contents:
            parts.append(f"contents={list(self.contents)!r}")
        parts.append(")")
        return "".join(parts)

    def __str__(self) -> str:
        return format_datagram(self.to_datagram())

    @property
    def timestamp(self) -> float | None:
        """Unix time of execution, or ``None`` for "immediately"."""
        if self.timetag.is_immediate:
            return None
        return self.timetag.to_unix()

    def write_to(self, writer: OscWriter) -> None:
        writer.begin_bundle(self.timetag)
        for content in self.contents:
            content.write_to(writer)
        writer.end_bundle()

    def to_datagram(self, options: Options | None = None) -> bytes:
        """Encode this bundle to an OSC binary datagram."""
        writer = (options or DEFAULT_OPTIONS).writer()
        self.write_to(writer)
        return writer.getvalue()

    @classmethod
    def from_datagram(
        cls, datagram: BytesLike, options: Options | None = None
    ) -> "OscBundle":
        """Decode an OSC binary datagram into an OscBundle."""
        packet = decode_packet(datagram, options)
        if not isinstance(packet, cls):
            raise StructuralError("datagram is not a bundle")
        return packet

    def messages(self) -> Iterator[tuple[OscMessage, Timetag]]:
        """Yield every message in this bundle tree with its innermost timetag."""
        for content in self.contents:
            if isinstance(content, OscBundle):
                yield from content.messages()
            else:
                yield content, self.timetag

    def to_list(self) -> list[Any]:
        result: list[Any] = [self.timestamp]
        result.append([x.to_list() for x in self.contents])
        return result


def _decode(
    data: bytes | bytearray, start: int, end: int, options: Options, depth: int
) -> OscPacket:
    if packet_type(data, start, end) is PacketType.MESSAGE:
        reader = MessageReader(
            data,
            start,
            end,
            encoding=options.encoding,
            validate_address=options.validate_addresses,
        )
        return OscMessage.from_reader(reader)
    if depth >= options.max_depth:
        raise StructuralError(f"bundles nested deeper than {options.max_depth}")
    bundle_reader = BundleReader(data, start, end)
    # Framing of every element is checked before any of them is decoded.
    bounds = bundle_reader.element_bounds()
    contents = [
        _decode(data, element_start, element_end, options, depth + 1)
        for element_start, element_end in bounds
    ]
    return OscBundle(bundle_reader.timetag, contents=contents)


def decode_packet(datagram: BytesLike, options: Options | None = None) -> OscPacket:
    """Decode a datagram into an ``OscMessage`` or a tree of ``OscBundle``."""
    if not isinstance(datagram, (bytes, bytearray)):
        datagram = bytes(datagram)
    return _decode(datagram, 0, len(datagram), options or DEFAULT_OPTIONS, 0)


def encode_packet(packet: OscPacket, options: Options | None = None) -> bytes:
    return packet.to_datagram(options)
