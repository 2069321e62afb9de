"""Tests for identifier matchers."""

from typst_test.test_set.matcher import Contains, Exact, Glob, Regex


def test_exact_and_contains() -> None:
    """Exact needs equality, contains a substring."""
    assert Exact("foo").matches("foo")
    assert not Exact("foo").matches("foobar")
    assert Contains("oba").matches("foobar")
    assert Contains("").matches("anything")


def test_regex_searches_anywhere() -> None:
    """Regexes match anywhere unless anchored."""
    assert Regex.compile("ba").matches("foo/bar")
    assert not Regex.compile("^ba").matches("foo/bar")


def test_glob_matches_whole_string_across_separators() -> None:
    """Globs match the whole string and wildcards cross slashes."""
    glob = Glob.compile("foo/*")

    assert glob.matches("foo/bar")
    assert glob.matches("foo/bar/baz")
    assert not glob.matches("xfoo/bar")
    assert Glob.compile("b[ao]r").matches("bor")


def test_glob_equality_uses_source() -> None:
    """Globs compiled from the same source are equal and hash alike."""
    assert Glob.compile("a*") == Glob.compile("a*")
    assert len({Glob.compile("a*"), Glob.compile("a*")}) == 1
    assert Glob.compile("a*") != Glob.compile("b*")


def test_string_forms_escape_delimiters() -> None:
    """String forms can be parsed back."""
    assert str(Regex.compile("a/b")) == "/a\\/b/"
    assert str(Glob.compile("a>b")) == "<a\\>b>"
    assert str(Exact("x")) == "=x"
    assert str(Contains("y")) == "~y"
