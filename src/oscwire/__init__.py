"""oscwire -- Open Sound Control 1.0 codec and address pattern matching."""

__version__ = "0.1.0"

from .arguments import INFINITUM, Argument, Infinitum
from .dispatch import Dispatcher
from .errors import BoundsError, EncodingError, OscError, PatternError, StructuralError
from .osc import (
    Options,
    OscBundle,
    OscMessage,
    decode_packet,
    encode_packet,
    format_datagram,
)
from .pattern import (
    CompiledPattern,
    PatternKind,
    compile_pattern,
    match_pattern,
    verify_pattern,
)
from .primitives import pad
from .reader import BundleReader, MessageReader, PacketType, packet_type
from .timetag import IMMEDIATELY, Timetag
from .writer import OscWriter, encode_message

__all__ = [
    "Argument",
    "BoundsError",
    "BundleReader",
    "CompiledPattern",
    "Dispatcher",
    "EncodingError",
    "IMMEDIATELY",
    "INFINITUM",
    "Infinitum",
    "MessageReader",
    "Options",
    "OscBundle",
    "OscError",
    "OscMessage",
    "OscWriter",
    "PacketType",
    "PatternError",
    "PatternKind",
    "StructuralError",
    "Timetag",
    "compile_pattern",
    "decode_packet",
    "encode_message",
    "encode_packet",
    "format_datagram",
    "match_pattern",
    "packet_type",
    "pad",
    "verify_pattern",
]
