"""OSC timetags: 64-bit NTP fixed-point timestamps."""

import datetime
import time
from dataclasses import dataclass
from typing import ClassVar

from .errors import EncodingError

NTP_TIMESTAMP_TO_SECONDS = 1.0 / 2.0**32.0
SECONDS_TO_NTP_TIMESTAMP = 2.0**32.0
SYSTEM_EPOCH = datetime.date(*time.gmtime(0)[0:3])
NTP_EPOCH = datetime.date(1900, 1, 1)
NTP_DELTA = (SYSTEM_EPOCH - NTP_EPOCH).days * 24 * 3600

_UINT32_LIMIT = 1 << 32
_UINT64_LIMIT = 1 << 64


@dataclass(frozen=True)
class Timetag:
    """A 64-bit OSC timetag.

    The high 32 bits hold whole seconds since the NTP epoch (1900-01-01),
    the low 32 bits hold the fractional part. The value ``1`` is reserved
    and means "execute immediately".
    """

    value: int

    IMMEDIATELY: ClassVar["Timetag"]

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise EncodingError(f"timetag must be an int, got {self.value!r}")
        if not 0 <= self.value < _UINT64_LIMIT:
            raise EncodingError(f"timetag out of range: {self.value}")

    def __int__(self) -> int:
        return self.value

    def __repr__(self) -> str:
        if self.is_immediate:
            return "Timetag.IMMEDIATELY"
        return f"Timetag(seconds={self.seconds}, fraction={self.fraction})"

    @classmethod
    def from_parts(cls, seconds: int, fraction: int = 0) -> "Timetag":
        if not 0 <= seconds < _UINT32_LIMIT:
            raise EncodingError(f"timetag seconds out of range: {seconds}")
        if not 0 <= fraction < _UINT32_LIMIT:
            raise EncodingError(f"timetag fraction out of range: {fraction}")
        return cls((seconds << 32) | fraction)

    @classmethod
    def from_seconds(cls, seconds: float) -> "Timetag":
        """Build a timetag from seconds since the NTP epoch.

        Values past the 32-bit seconds range wrap, as NTP era 0 does.
        """
        if seconds < 0:
            raise EncodingError(f"timetag seconds must be positive, got {seconds}")
        if seconds >= 4294967296:  # 2**32
            seconds = seconds % 4294967296
        return cls(int(seconds * SECONDS_TO_NTP_TIMESTAMP))

    @classmethod
    def from_unix(cls, seconds: float) -> "Timetag":
        """Build a timetag from a Unix timestamp (as ``time.time()`` returns)."""
        return cls.from_seconds(seconds + NTP_DELTA)

    @property
    def seconds(self) -> int:
        return self.value >> 32

    @property
    def fraction(self) -> int:
        return self.value & 0xFFFFFFFF

    @property
    def is_immediate(self) -> bool:
        return self.value == 1

    def to_seconds(self) -> float:
        """Seconds since the NTP epoch as a float."""
        return self.value * NTP_TIMESTAMP_TO_SECONDS

    def to_unix(self) -> float:
        return self.to_seconds() - NTP_DELTA


Timetag.IMMEDIATELY = Timetag(1)
IMMEDIATELY = Timetag.IMMEDIATELY
