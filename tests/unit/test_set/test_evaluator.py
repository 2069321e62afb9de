"""Tests for test set evaluation."""

from collections.abc import Callable
from pathlib import Path
from unittest.mock import Mock

import pytest

from typst_test.models.test import Annotation, Custom, Skip, TestId, TestKind, TestRecord
from typst_test.registry import TestRegistry
from typst_test.test_set.ast import (
    IdMatch,
    Node,
    complement,
    difference,
    intersect,
    symmetric_difference,
    union,
)
from typst_test.test_set.evaluator import evaluate, with_implicit_skip
from typst_test.test_set.matcher import Exact
from typst_test.test_set.parser import parse


def record(
    test_id: str, kind: TestKind = "compile-only", *annotations: Annotation
) -> TestRecord:
    return TestRecord(
        id=TestId(test_id),
        kind=kind,
        directory=Path("tests") / test_id,
        annotations=annotations,
    )


@pytest.fixture
def registry() -> TestRegistry:
    """Registry with a mix of kinds and annotations."""
    return TestRegistry(
        root=Path("tests"),
        tests=(
            record("a"),
            record("foo/bar", "persistent"),
            record("foo/baz", "ephemeral", Custom("slow")),
            record("foo/qux/bar", "persistent", Skip()),
            record("other/b1", "compile-only", Custom("slow"), Skip()),
        ),
    )


def ids(source: str, registry: TestRegistry, **kwargs: str) -> list[str]:
    return [str(test.id) for test in evaluate(parse(source), registry, **kwargs)]


@pytest.mark.parametrize(
    ("source", "expected"),
    [
        ("all", ["a", "foo/bar", "foo/baz", "foo/qux/bar", "other/b1"]),
        ("none", []),
        ("persistent", ["foo/bar", "foo/qux/bar"]),
        ("ephemeral | compile-only", ["a", "foo/baz", "other/b1"]),
        ("skip", ["foo/qux/bar", "other/b1"]),
        ("custom(slow)", ["foo/baz", "other/b1"]),
        ("custom(slo)", []),
        ("mod(=foo)", ["foo/bar", "foo/baz"]),
        ("mod(~foo)", ["foo/bar", "foo/baz", "foo/qux/bar"]),
        ("name(=bar)", ["foo/bar", "foo/qux/bar"]),
        ("name(/^b\\d+$/)", ["other/b1"]),
        ("id(<foo/*>)", ["foo/bar", "foo/baz", "foo/qux/bar"]),
        ("id(<foo/ba?>)", ["foo/bar", "foo/baz"]),
        ("foo/bar", ["foo/bar"]),
        ("foo", []),
        ("mod(=\"\")", ["a"]),
        ("all - skip", ["a", "foo/bar", "foo/baz"]),
        ("persistent ^ skip", ["foo/bar", "other/b1"]),
        ("!persistent & custom(slow)", ["foo/baz", "other/b1"]),
    ],
)
def test_evaluates_expressions(source: str, expected: list[str], registry: TestRegistry) -> None:
    """Selections are returned in registry order."""
    assert ids(source, registry) == expected
    assert ids(source, registry, strategy="materialize") == expected


@pytest.mark.parametrize(
    ("left", "right"),
    [
        ("a | persistent", "persistent | a"),
        ("skip & custom(slow)", "custom(slow) & skip"),
        ("skip ^ ephemeral", "ephemeral ^ skip"),
        ("!(skip | persistent)", "!skip & !persistent"),
        ("!(skip & persistent)", "!skip | !persistent"),
        ("persistent - skip", "persistent & !skip"),
    ],
)
def test_set_identities(left: str, right: str, registry: TestRegistry) -> None:
    """Commutativity and De Morgan identities hold."""
    assert ids(left, registry) == ids(right, registry)


def test_strategies_agree_on_nested_expression(registry: TestRegistry) -> None:
    """Both strategies select the same tests."""
    node = union(
        difference(parse("mod(~foo)"), complement(parse("persistent"))),
        intersect(parse("skip"), parse("custom(slow)")),
    )

    assert evaluate(node, registry) == evaluate(node, registry, strategy="materialize")


def test_implicit_skip_excludes_skipped_tests(registry: TestRegistry) -> None:
    """Implicit skip removes skip-annotated tests from a selection."""
    selected = evaluate(with_implicit_skip(parse("persistent")), registry)

    assert [str(test.id) for test in selected] == ["foo/bar"]


def test_evaluates_plain_iterables() -> None:
    """Any iterable of records can be evaluated."""
    tests = [record("b"), record("a")]

    assert [str(t.id) for t in evaluate(parse("all"), tests)] == ["b", "a"]


@pytest.mark.parametrize(
    ("source", "expected"),
    [
        ("compile-only() | skip()", ["a/y"]),
        ("!skip() & id(~a)", ["a/x"]),
        ("all() - ephemeral()", ["a/x", "a/y"]),
    ],
)
def test_mixed_kind_scenarios(source: str, expected: list[str]) -> None:
    """Kind and annotation predicates combine as sets."""
    registry = TestRegistry(
        root=Path("tests"),
        tests=(
            record("a/x", "persistent"),
            record("a/y", "compile-only", Skip()),
            record("b", "ephemeral"),
        ),
    )

    assert ids(source, registry) == expected


def tracked(member: bool) -> tuple[IdMatch, Mock]:
    """An identifier match whose matcher records every call."""
    matcher = Mock(spec=Exact)
    matcher.matches.return_value = member
    return IdMatch("full", matcher), matcher


@pytest.mark.parametrize(
    ("build", "left_member", "right_evaluated"),
    [
        (union, True, False),
        (union, False, True),
        (intersect, False, False),
        (intersect, True, True),
        (difference, False, False),
        (difference, True, True),
        (symmetric_difference, True, True),
        (symmetric_difference, False, True),
    ],
)
def test_short_circuit_skips_undecided_operands(
    build: Callable[[Node, Node], Node], left_member: bool, right_evaluated: bool
) -> None:
    """The right operand is only tested when the left one leaves membership open."""
    left, left_matcher = tracked(left_member)
    right, right_matcher = tracked(True)

    evaluate(build(left, right), [record("a")])

    left_matcher.matches.assert_called_once_with("a")
    assert right_matcher.matches.called is right_evaluated


def test_long_chains_evaluate(registry: TestRegistry) -> None:
    """Chains far longer than the interpreter stack evaluate with both strategies."""
    node = parse(" | ".join(f"t{i}" for i in range(3000)))
    tests = [record("t0"), record("t2999"), record("u")]

    for strategy in ("short-circuit", "materialize"):
        selected = evaluate(node, tests, strategy=strategy)
        assert [str(test.id) for test in selected] == ["t0", "t2999"]

    assert ids("!" * 3001 + "persistent", registry) == ["a", "foo/baz", "other/b1"]
    assert ids("!" * 3000 + "persistent", registry, strategy="materialize") == [
        "foo/bar",
        "foo/qux/bar",
    ]
