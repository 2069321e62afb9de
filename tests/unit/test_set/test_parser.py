"""Tests for test set parser."""

import re

import pytest

from typst_test.models.test import Custom, Skip
from typst_test.test_set.ast import (
    AnnotationPredicate,
    Empty,
    IdMatch,
    KindPredicate,
    Universe,
    chain,
    complement,
    difference,
    intersect,
    strip_complements,
    symmetric_difference,
    union,
)
from typst_test.test_set.errors import ParseError, SemanticError, TestSetError
from typst_test.test_set.matcher import Contains, Exact, Glob, Regex
from typst_test.test_set.parser import TestSetExpression, parse


def exact(value: str) -> IdMatch:
    return IdMatch("full", Exact(value))


a, b, c = exact("a"), exact("b"), exact("c")


@pytest.mark.parametrize(
    ("source", "expected"),
    [
        ("a | b & c", union(a, intersect(b, c))),
        ("a & b | c", union(intersect(a, b), c)),
        ("a - b - c", difference(difference(a, b), c)),
        ("a - b | c", union(difference(a, b), c)),
        ("a & b ^ c", intersect(a, symmetric_difference(b, c))),
        ("!a & b", intersect(complement(a), b)),
        ("not not a", complement(complement(a))),
        ("(a | b) & c", intersect(union(a, b), c)),
        ("a or b and c", union(a, intersect(b, c))),
        ("a \\ b", difference(a, b)),
    ],
)
def test_operator_precedence(source: str, expected: object) -> None:
    """Operators bind by precedence and associate to the left."""
    assert parse(source) == expected


@pytest.mark.parametrize(
    ("source", "expected"),
    [
        ("none", Empty()),
        ("all()", Universe()),
        ("compile-only", KindPredicate("compile-only")),
        ("ephemeral()", KindPredicate("ephemeral")),
        ("persistent", KindPredicate("persistent")),
        ("skip", AnnotationPredicate(Skip())),
        ("custom(slow)", AnnotationPredicate(Custom("slow"))),
        ("custom(=slow)", AnnotationPredicate(Custom("slow"))),
        ("id(a/b)", IdMatch("full", Exact("a/b"))),
        ("mod(~foo)", IdMatch("module", Contains("foo"))),
        ("name(=bar)", IdMatch("name", Exact("bar"))),
        ("id(<a/*>)", IdMatch("full", Glob.compile("a/*"))),
        ("a/b", IdMatch("full", Exact("a/b"))),
        ("~foo", IdMatch("full", Contains("foo"))),
    ],
)
def test_builtins(source: str, expected: object) -> None:
    """Built-in constants and functions resolve to their nodes."""
    assert parse(source) == expected


def test_regex_pattern_is_compiled() -> None:
    """Regex literals are compiled while parsing."""
    node = parse(r"name(/^b\d+$/)")

    assert isinstance(node, IdMatch)
    assert isinstance(node.matcher, Regex)
    assert node.matcher.pattern == re.compile(r"^b\d+$")


def test_equivalent_inputs_produce_equal_trees() -> None:
    """Whitespace and operator spelling do not affect the tree."""
    assert parse("a|b&!c") == parse(" a  or  b and  not c ")


@pytest.mark.parametrize(
    ("source", "offset"),
    [
        ("", 0),
        ("   ", 3),
        ("a b", 2),
        ("(a | b", 6),
        ("a |", 3),
        ("id(a", 4),
        ("/[/", 0),
        ("=ä |", 5),
    ],
)
def test_parse_errors(source: str, offset: int) -> None:
    """Malformed expressions raise ParseError with a byte offset."""
    with pytest.raises(ParseError) as exc_info:
        parse(source)

    assert exc_info.value.offset == offset


def test_parse_error_describes_expectation() -> None:
    """Parse errors name what was expected and what was found."""
    with pytest.raises(ParseError) as exc_info:
        parse("a |")

    assert exc_info.value.expected == "expression"
    assert exc_info.value.found == "end of input"


@pytest.mark.parametrize(
    ("source", "message"),
    [
        ("foo(a)", "unknown function 'foo'"),
        ("id", "must be called with an argument"),
        ("id(a, b)", "takes exactly 1 argument, 2 given"),
        ("id()", "takes exactly 1 argument, 0 given"),
        ("all(a)", "takes no arguments"),
        ("id(a | b)", "expects a pattern, not an expression"),
        ("custom(~slow)", "expects a name, not a contains pattern"),
        ("custom(a/b)", "expects a name"),
    ],
)
def test_semantic_errors(source: str, message: str) -> None:
    """Misused built-ins raise SemanticError."""
    with pytest.raises(SemanticError, match=re.escape(message)):
        parse(source)


def test_errors_share_base_class() -> None:
    """Both error kinds can be handled as TestSetError."""
    with pytest.raises(TestSetError):
        parse("foo()")
    with pytest.raises(TestSetError):
        parse("(")


def test_all_modifier_is_stripped() -> None:
    """The all: prefix is recorded and removed before parsing."""
    expression = TestSetExpression.parse("all:a | b")

    assert expression.all_modifier
    assert expression.node == union(a, b)
    assert expression.source == "all:a | b"


def test_expression_without_modifier() -> None:
    """Plain expressions are not confirmed."""
    expression = TestSetExpression.parse("all")

    assert not expression.all_modifier
    assert expression.node == Universe()


def test_all_modifier_keeps_error_offsets() -> None:
    """Offsets still point into the original source."""
    with pytest.raises(ParseError) as exc_info:
        TestSetExpression.parse("all: a |")

    assert exc_info.value.offset == 8


def test_deeply_nested_parentheses_are_rejected() -> None:
    """Nesting beyond what the parser can handle is a parse error, not a crash."""
    depth = 2000
    with pytest.raises(ParseError) as exc_info:
        parse("(" * depth + "a" + ")" * depth)

    assert exc_info.value.expected == "less deeply nested expression"


def test_long_operator_chains_parse() -> None:
    """Long chains of binary operators and complements parse without recursion."""
    chained = parse(" | ".join(f"t{i}" for i in range(3000)))
    negated = parse("!" * 3000 + "a")

    assert chain(chained)[-1] == exact("t2999")
    assert len(chain(chained)) == 3000
    assert strip_complements(negated) == (a, 3000)
