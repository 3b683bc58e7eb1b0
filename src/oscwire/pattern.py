"""OSC address pattern compilation and matching.

Supported syntax is a restricted subset of OSC 1.0 pattern matching:

- ``?`` matches any single character except ``/``.
- ``*`` matches zero or more characters up to the next ``/``. It is greedy
  and does not backtrack, so ``*`` is only useful at the end of a segment.
- ``{foo,bar}`` matches one of the listed literal alternatives. The first
  alternative that matches at the group's position is taken; the group
  never revisits that choice.

Character classes (``[abc]``) and nested braces are rejected at compile
time. Every operation is linear in the pattern and address lengths apart
from brace groups, which cost at most the total length of their
alternatives.
"""

import enum

from .errors import PatternError

# Not allowed anywhere outside a brace group.
_FORBIDDEN = frozenset("#]},[ ")
# Not allowed inside a brace alternative.
_FORBIDDEN_IN_GROUP = frozenset("/#]*?[{ ")


class PatternKind(enum.IntEnum):
    """Compilation result.

    - ``INVALID`` -- the pattern breaks the syntax rules and never matches.
    - ``STATIC`` -- no wildcards; matching is plain string equality.
    - ``DYNAMIC`` -- contains ``*``, ``?`` or a brace group.
    """

    INVALID = 0
    STATIC = 1
    DYNAMIC = 2


def _check(pattern: str) -> tuple[PatternKind, str | None]:
    if not pattern.startswith("/"):
        return PatternKind.INVALID, "must start with '/'"
    dynamic = False
    length = len(pattern)
    slash = 0
    index = 1
    while index < length:
        char = pattern[index]
        if char == "/":
            if index - slash == 1:
                return PatternKind.INVALID, f"empty segment at offset {index}"
            slash = index
        elif char == "{":
            dynamic = True
            group_start = index
            index += 1
            alternative_length = 0
            while True:
                if index >= length:
                    return (
                        PatternKind.INVALID,
                        f"unterminated '{{' at offset {group_start}",
                    )
                char = pattern[index]
                if char in _FORBIDDEN_IN_GROUP:
                    return (
                        PatternKind.INVALID,
                        f"{char!r} not allowed in '{{...}}' at offset {index}",
                    )
                if char == "," or char == "}":
                    if alternative_length == 0:
                        return (
                            PatternKind.INVALID,
                            f"empty alternative at offset {index}",
                        )
                    if char == "}":
                        break
                    alternative_length = 0
                else:
                    alternative_length += 1
                index += 1
        elif char == "*" or char == "?":
            dynamic = True
        elif char in _FORBIDDEN:
            if char == "[":
                reason = "character classes are not supported"
            else:
                reason = f"{char!r} not allowed"
            return PatternKind.INVALID, f"{reason} (offset {index})"
        index += 1
    if pattern.endswith("/"):
        return PatternKind.INVALID, "must not end with '/'"
    return (PatternKind.DYNAMIC if dynamic else PatternKind.STATIC), None


def verify_pattern(pattern: str) -> PatternKind:
    """Classify ``pattern`` without raising."""
    return _check(pattern)[0]


def _has_empty_segment(address: str) -> bool:
    return address == "/" or address.endswith("/") or "//" in address


def _match_group(pattern: str, p: int, address: str, i: int) -> tuple[int, int]:
    """Match the brace group at ``pattern[p]`` against ``address[i:]``.

    Returns the pattern and address positions just past the group, or
    ``(-1, i)`` when no alternative matches.
    """
    entry = i
    p += 1
    address_length = len(address)
    while True:
        i = entry
        while pattern[p] != "," and pattern[p] != "}":
            if i < address_length and address[i] == pattern[p]:
                p += 1
                i += 1
            else:
                break
        else:
            return pattern.index("}", p) + 1, i
        # Mismatch: rewind the address and move on to the next alternative.
        while pattern[p] != "," and pattern[p] != "}":
            p += 1
        if pattern[p] == "}":
            return -1, entry
        p += 1


def _match_dynamic(pattern: str, address: str) -> bool:
    if not address.startswith("/") or _has_empty_segment(address):
        return False
    pattern_length = len(pattern)
    address_length = len(address)
    p = i = 1
    while p < pattern_length and i < address_length:
        char = address[i]
        if char == "/":
            if pattern[p] == "*":
                p += 1
            if p >= pattern_length or pattern[p] != "/":
                return False
            p += 1
            i += 1
            continue
        token = pattern[p]
        if token == "?":
            p += 1
            i += 1
        elif token == "*":
            while i < address_length and address[i] != "/":
                i += 1
            p += 1
        elif token == "{":
            p, i = _match_group(pattern, p, address, i)
            if p < 0:
                return False
        elif token == char:
            p += 1
            i += 1
        else:
            return False
    if p < pattern_length and pattern[p] == "*":
        p += 1
    return p == pattern_length and i == address_length


class CompiledPattern:
    """A classified address pattern, ready for repeated matching.

    Instances are immutable and can be shared between threads.
    """

    __slots__ = ("_pattern", "_kind", "_reason")

    def __init__(self, pattern: str) -> None:
        if not isinstance(pattern, str):
            raise TypeError(f"pattern must be str, got {type(pattern).__name__}")
        self._pattern = pattern
        self._kind, self._reason = _check(pattern)

    def __repr__(self) -> str:
        return f"CompiledPattern({self._pattern!r}, {self._kind.name})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, CompiledPattern):
            return self._pattern == other._pattern
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._pattern)

    @property
    def pattern(self) -> str:
        return self._pattern

    @property
    def kind(self) -> PatternKind:
        return self._kind

    @property
    def reason(self) -> str | None:
        """Why the pattern is invalid, or ``None``."""
        return self._reason

    @property
    def is_valid(self) -> bool:
        return self._kind is not PatternKind.INVALID

    @property
    def is_static(self) -> bool:
        return self._kind is PatternKind.STATIC

    def match(self, address: str) -> bool:
        """Return whether ``address`` matches this pattern."""
        if self._kind is PatternKind.STATIC:
            return self._pattern == address
        if self._kind is PatternKind.DYNAMIC:
            return _match_dynamic(self._pattern, address)
        raise PatternError(f"invalid pattern {self._pattern!r}: {self._reason}")


def compile_pattern(pattern: str) -> CompiledPattern:
    """Compile ``pattern``, raising ``PatternError`` if it is invalid."""
    compiled = CompiledPattern(pattern)
    if not compiled.is_valid:
        raise PatternError(f"invalid pattern {pattern!r}: {compiled.reason}")
    return compiled


def match_pattern(pattern: str, address: str) -> bool:
    return compile_pattern(pattern).match(address)
