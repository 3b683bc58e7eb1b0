"""Tests for the address pattern compiler and matcher."""

import random
import re

import pytest

from oscwire.errors import PatternError
from oscwire.pattern import (
    CompiledPattern,
    PatternKind,
    compile_pattern,
    match_pattern,
    verify_pattern,
)

# -- Classification ------------------------------------------------------------


class TestVerifyPattern:
    @pytest.mark.parametrize(
        "pattern", ["/foo", "/foo/bar", "/a/b/c", "/foo_bar-1", "/x.y"]
    )
    def test_static(self, pattern):
        assert verify_pattern(pattern) is PatternKind.STATIC

    @pytest.mark.parametrize(
        "pattern",
        ["/foo/*", "/{a,b}", "/a?c", "/*", "/a/{b1,c23}/f", "/a{x,y}*"],
    )
    def test_dynamic(self, pattern):
        assert verify_pattern(pattern) is PatternKind.DYNAMIC

    @pytest.mark.parametrize(
        "pattern",
        [
            "",
            "foo",
            "/",
            "/foo[",
            "/[abc]",
            "//foo",
            "/foo//bar",
            "/foo/",
            "/foo bar",
            "/foo#",
            "/foo]",
            "/foo}",
            "/a,b",
            "/{a,b",
            "/{",
            "/{}",
            "/{a,}",
            "/{,a}",
            "/{a,,b}",
            "/{a{b}}",
            "/{a/b}",
            "/{a*}",
            "/{a?}",
            "/{a b}",
            "/{a#}",
            "/{a]}",
        ],
    )
    def test_invalid(self, pattern):
        assert verify_pattern(pattern) is PatternKind.INVALID

    def test_compile_invalid_raises(self):
        with pytest.raises(PatternError, match="character classes"):
            compile_pattern("/foo[")

    def test_compile_returns_compiled(self):
        compiled = compile_pattern("/foo/*")
        assert isinstance(compiled, CompiledPattern)
        assert compiled.kind is PatternKind.DYNAMIC
        assert compiled.is_valid
        assert not compiled.is_static
        assert compiled.reason is None
        assert compiled.pattern == "/foo/*"

    def test_invalid_compiled_pattern_refuses_to_match(self):
        compiled = CompiledPattern("/foo/")
        assert not compiled.is_valid
        assert compiled.reason is not None
        with pytest.raises(PatternError):
            compiled.match("/foo")

    def test_equality(self):
        assert CompiledPattern("/a/*") == compile_pattern("/a/*")
        assert CompiledPattern("/a/*") != CompiledPattern("/a/?")
        assert len({CompiledPattern("/a"), CompiledPattern("/a")}) == 1

    def test_pattern_must_be_str(self):
        with pytest.raises(TypeError):
            CompiledPattern(b"/foo")  # type: ignore


# -- Matching ------------------------------------------------------------------


MATCHING = [
    ("/foo", "/foo"),
    ("/foo/bar", "/foo/bar"),
    ("/foo/bar/baz", "/foo/bar/baz"),
    ("/?", "/a"),
    ("/?", "/b"),
    ("/a?c", "/abc"),
    ("/a?c", "/acc"),
    ("/a?c", "/a1c"),
    ("/?a?", "/dad"),
    ("/?a?", "/bad"),
    ("/*", "/foo"),
    ("/*", "/bar"),
    ("/*/*", "/bar/bleem"),
    ("/*/*", "/bar/boof"),
    ("/foo/*", "/foo/abc"),
    ("/foo/*", "/foo/magic"),
    ("/foo/*/bar", "/foo/abc/bar"),
    ("/foo/*/bar", "/foo/defghi/bar"),
    ("/foo/*/*/bar", "/foo/abc/def/bar"),
    ("/foo*", "/foo"),
    ("/foo*", "/foobar"),
    ("/foo*", "/foof"),
    ("/foo*/bar", "/foo/bar"),
    ("/foo*/bar", "/foobar/bar"),
    ("/foo*/bar", "/foof/bar"),
    ("/???/foo/*", "/abc/foo/a"),
    ("/???/foo/*", "/abc/foo/ab"),
    ("/???/foo/*", "/abc/foo/abc"),
    ("/{a,b,c}", "/a"),
    ("/{a,b,c}", "/b"),
    ("/{a,b,c}", "/c"),
    ("/{a,b,c}/boof", "/a/boof"),
    ("/{a,b,c}/barf", "/b/barf"),
    ("/{a,b,c}/snarf", "/c/snarf"),
    ("/{foo,bar,baz}", "/foo"),
    ("/{foo,bar,baz}", "/bar"),
    ("/{foo,bar,baz}", "/baz"),
    ("/{foo,bar,baz}zoom", "/foozoom"),
    ("/{foo,bar,baz}zoom", "/barzoom"),
    ("/{foo,bar,baz}zoom", "/bazzoom"),
    ("/a/{b,c,d,e}/f", "/a/b/f"),
    ("/a/{b,c,d,e}/f", "/a/c/f"),
    ("/a/{b,c,d,e}/f", "/a/d/f"),
    ("/a/{b,c,d,e}/f", "/a/e/f"),
    ("/a/{b1,c23,d456,e789}/f", "/a/b1/f"),
    ("/a/{b1,c23,d456,e789}/f", "/a/c23/f"),
    ("/a/{b1,c23,d456,e789}/f", "/a/d456/f"),
    ("/a/{b1,c23,d456,e789}/f", "/a/e789/f"),
    ("/a{abc,def,ghi}b", "/aabcb"),
    ("/a{abc,def,ghi}b", "/adefb"),
    ("/a{abc,def,ghi}b", "/aghib"),
    ("/a/{a12,b23,c34}/{d56,e67,f89}", "/a/a12/d56"),
    ("/a/{a12,b23,c34}/{d56,e67,f89}", "/a/c34/e67"),
    ("/a/{a12,b23,c34}/{d56,e67,f89}", "/a/b23/f89"),
    ("/a{alpha,bravo,delta}*", "/aalpha"),
    ("/a{alpha,bravo,delta}*", "/aalpha1"),
    ("/a{alpha,bravo,delta}*", "/abravo"),
    ("/a{alpha,bravo,delta}*", "/abravo1"),
    ("/a/{b,c}/d", "/a/b/d"),
    ("/a/{b,c}/d", "/a/c/d"),
]

NOT_MATCHING = [
    ("/?", "/ab"),
    ("/?", "/abc"),
    ("/?", "/"),
    ("/{a,b,c}", "/d"),
    ("/{a,b,c}/darth", "/d/darth"),
    ("/{foo,bar,baz}", "/zip"),
    ("/{foo,bar,baz}", "/fof"),
    ("/{foo,bar,baz}zoom", "/zimzoom"),
    ("/a/{b1,c23,d456,e789}/f", "/a/e78/f"),
    ("/a{abc,def,ghi}b", "/aabb"),
    ("/a{abc,def,ghi}b", "/adeb"),
    ("/a{abc,def,ghi}b", "/aghb"),
    ("/*/foo", "//foo"),
    ("/foo/*", "/foo"),
    ("/a/{b,c}/d", "/a/e/d"),
    ("/foo/bar", "/foo/bar/"),
    ("/foo/bar", "/foo/ba"),
    ("/foo/bar", "/foo/barr"),
    ("/*", "/a/b"),
    ("/*", "a"),
    ("/a?c", "/a/c"),
    ("/a*", "/a/"),
    ("/foo*/bar", "/foo/baz"),
]


class TestMatch:
    @pytest.mark.parametrize("pattern, address", MATCHING)
    def test_matches(self, pattern, address):
        assert match_pattern(pattern, address)

    @pytest.mark.parametrize("pattern, address", NOT_MATCHING)
    def test_does_not_match(self, pattern, address):
        assert not match_pattern(pattern, address)

    def test_static_is_exact(self):
        compiled = compile_pattern("/foo/bar")
        assert compiled.is_static
        assert compiled.match("/foo/bar")
        assert not compiled.match("/foo/bar/baz")
        assert not compiled.match("/foo")
        assert not compiled.match("/Foo/bar")

    def test_compiled_pattern_reused(self):
        compiled = compile_pattern("/synth/?/freq")
        addresses = ["/synth/1/freq", "/synth/2/freq", "/synth/10/freq"]
        assert [compiled.match(address) for address in addresses] == [
            True,
            True,
            False,
        ]

    def test_star_does_not_backtrack(self):
        # ``*`` consumes the whole segment, leaving nothing for the literal.
        assert not match_pattern("/a*c", "/abc")

    def test_first_complete_alternative_wins(self):
        assert not match_pattern("/{a,ab}c", "/abc")
        assert match_pattern("/{ab,a}c", "/abc")
        assert match_pattern("/{a,ab}c", "/ac")

    def test_alternatives_of_differing_length(self):
        compiled = compile_pattern("/x{long,l,lo}y")
        assert compiled.match("/xlongy")
        assert compiled.match("/xly")
        # "l" matches first, so "lo" is never tried for this input.
        assert not compiled.match("/xloy")

    def test_alternative_reset_after_partial_match(self):
        compiled = compile_pattern("/{abcd,abx,ab}/z")
        assert compiled.match("/abcd/z")
        assert compiled.match("/abx/z")
        assert compiled.match("/ab/z")
        assert not compiled.match("/abc/z")

    def test_alternative_past_end_of_input(self):
        assert not match_pattern("/{abcdef,xyz}", "/abc")

    def test_long_input(self):
        address = "/" + "a" * 10000
        assert match_pattern("/*", address)
        assert match_pattern("/a*", address)
        assert not match_pattern("/{b,c}*", address)


# -- Randomized comparison with a regular expression ---------------------------


ALPHABET = "abc"


def _word(rng: random.Random, low: int, high: int) -> str:
    return "".join(rng.choice(ALPHABET) for _ in range(rng.randint(low, high)))


def _prefix_free(words: list[str]) -> list[str]:
    """Keep words so that none is a prefix of another."""
    kept: list[str] = []
    for word in sorted(set(words), key=lambda word: (len(word), word)):
        if not any(word.startswith(other) for other in kept):
            kept.append(word)
    return kept


def _random_pattern(rng: random.Random) -> tuple[str, str, list[list[object]]]:
    """Return ``(pattern, regex, segments)``.

    With prefix-free alternatives and ``*`` only at the end of a segment the
    restricted matcher agrees with an ordinary regular expression.
    """
    pattern = []
    regex = []
    segments: list[list[object]] = []
    for _ in range(rng.randint(1, 3)):
        tokens: list[object] = []
        pattern.append("/")
        regex.append("/")
        for _ in range(rng.randint(1, 3)):
            kind = rng.choice(["literal", "literal", "any", "group"])
            if kind == "literal":
                char = rng.choice(ALPHABET)
                tokens.append(char)
                pattern.append(char)
                regex.append(re.escape(char))
            elif kind == "any":
                tokens.append("?")
                pattern.append("?")
                regex.append("[^/]")
            else:
                alternatives = _prefix_free(
                    [_word(rng, 1, 3) for _ in range(rng.randint(1, 4))]
                )
                rng.shuffle(alternatives)
                tokens.append(alternatives)
                pattern.append("{" + ",".join(alternatives) + "}")
                regex.append("(?:" + "|".join(map(re.escape, alternatives)) + ")")
        if rng.random() < 0.3:
            tokens.append("*")
            pattern.append("*")
            regex.append("[^/]*")
        segments.append(tokens)
    return "".join(pattern), "".join(regex), segments


def _matching_address(rng: random.Random, segments: list[list[object]]) -> str:
    parts = []
    for tokens in segments:
        segment = ""
        for token in tokens:
            if isinstance(token, list):
                segment += rng.choice(token)
            elif token == "?":
                segment += rng.choice(ALPHABET)
            elif token == "*":
                segment += _word(rng, 0, 2)
            else:
                segment += str(token)
        parts.append(segment)
    return "/" + "/".join(parts)


def _random_address(rng: random.Random) -> str:
    return "".join("/" + _word(rng, 1, 4) for _ in range(rng.randint(1, 3)))


class TestRandomized:
    @pytest.mark.parametrize("seed", range(20))
    def test_agrees_with_regex(self, seed):
        rng = random.Random(seed)
        for _ in range(50):
            pattern, regex, segments = _random_pattern(rng)
            compiled = compile_pattern(pattern)
            oracle = re.compile(regex)
            sample = _matching_address(rng, segments)
            assert compiled.match(sample), (pattern, sample)
            for address in [sample[:-1], sample + "a", _random_address(rng)]:
                if address.endswith("/"):
                    continue
                expected = oracle.fullmatch(address) is not None
                assert compiled.match(address) is expected, (pattern, address)
