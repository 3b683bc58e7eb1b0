"""Exception types raised by the codec and the pattern compiler."""


class OscError(ValueError):
    """Base class for every failure reported by oscwire."""


class StructuralError(OscError):
    """A packet's framing is wrong: bad cookie, misaligned or mismatched lengths."""


class BoundsError(OscError):
    """A read or write would move past the declared end of its buffer."""


class EncodingError(OscError):
    """A value or type tag cannot be represented on the wire."""


class PatternError(OscError):
    """An address pattern is syntactically invalid."""
