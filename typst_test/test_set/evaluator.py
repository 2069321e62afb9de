"""Evaluation of test set expressions against discovered tests.

Two strategies produce identical results and differ only in cost:

- `short-circuit` tests each candidate against the tree, skipping the right
  operand of union, intersection and difference when the left operand
  already decides membership.
- `materialize` computes the full set of every sub-expression and combines
  them with set operations.
"""

import logging
from collections.abc import Iterable, Sequence, Set
from typing import Literal

from typst_test.models.test import Custom, Skip, TestId, TestRecord
from typst_test.registry import TestRegistry
from typst_test.test_set.ast import (
    AnnotationPredicate,
    BinaryOp,
    Empty,
    IdMatch,
    KindPredicate,
    Node,
    UnaryOp,
    Universe,
    chain,
    difference,
    strip_complements,
)

log = logging.getLogger(__name__)

type Strategy = Literal["short-circuit", "materialize"]


def contains(node: Node, test: TestRecord) -> bool:
    """Whether `test` is a member of the set described by `node`."""
    match node:
        case Empty():
            return False
        case Universe():
            return True
        case KindPredicate(kind=kind):
            return test.kind == kind
        case AnnotationPredicate(annotation=Custom(name=name)):
            return test.has_custom(name)
        case AnnotationPredicate():
            return test.is_skipped
        case IdMatch(scope=scope, matcher=matcher):
            return matcher.matches(_target(test.id, scope))
        case UnaryOp():
            operand, depth = strip_complements(node)
            return contains(operand, test) != (depth % 2 == 1)
        case BinaryOp(operator=operator):
            first, *rest = chain(node)
            match operator:
                case "union":
                    return contains(first, test) or any(contains(o, test) for o in rest)
                case "intersect":
                    return contains(first, test) and all(contains(o, test) for o in rest)
                case "difference":
                    return contains(first, test) and not any(
                        contains(o, test) for o in rest
                    )
                case _:
                    member = contains(first, test)
                    for other in rest:
                        member = member != contains(other, test)
                    return member
    raise TypeError(f"Not a test set node: {node!r}")


def _target(test_id: TestId, scope: str) -> str:
    match scope:
        case "module":
            return test_id.module
        case "name":
            return test_id.name
        case _:
            return test_id.value


def materialize(node: Node, tests: Sequence[TestRecord]) -> Set[TestId]:
    """Compute the whole set of identifiers described by `node`."""
    match node:
        case UnaryOp():
            operand, depth = strip_complements(node)
            selected = materialize(operand, tests)
            if depth % 2:
                return {test.id for test in tests} - selected
            return selected
        case BinaryOp(operator=operator):
            first, *rest = chain(node)
            result = set(materialize(first, tests))
            for other in rest:
                rhs = materialize(other, tests)
                match operator:
                    case "union":
                        result |= rhs
                    case "intersect":
                        result &= rhs
                    case "difference":
                        result -= rhs
                    case _:
                        result ^= rhs
            return result
        case _:
            return {test.id for test in tests if contains(node, test)}


def evaluate(
    node: Node,
    registry: TestRegistry | Iterable[TestRecord],
    *,
    strategy: Strategy = "short-circuit",
) -> Sequence[TestRecord]:
    """Select the tests described by `node`, in registry order."""
    tests = list(registry)
    if strategy == "materialize":
        selected = materialize(node, tests)
        result = [test for test in tests if test.id in selected]
    else:
        result = [test for test in tests if contains(node, test)]

    log.debug("Selected %d of %d test(s) with %s", len(result), len(tests), node)
    return result


def with_implicit_skip(node: Node) -> Node:
    """Exclude skip-annotated tests from the selection."""
    return difference(node, AnnotationPredicate(Skip()))
