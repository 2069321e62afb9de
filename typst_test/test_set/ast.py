"""Typed nodes of parsed test set expressions.

Nodes are immutable and compare structurally, so two parses of equivalent
input produce equal trees.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from typst_test.models.test import Annotation, Custom, TestKind
from typst_test.test_set.matcher import Matcher

type Scope = Literal["full", "module", "name"]
type UnaryOperator = Literal["complement"]
type BinaryOperator = Literal["union", "intersect", "difference", "symmetric-difference"]


@dataclass(frozen=True)
class Empty:
    """Contains no tests."""

    def __str__(self) -> str:
        return "none()"


@dataclass(frozen=True)
class Universe:
    """Contains every test."""

    def __str__(self) -> str:
        return "all()"


@dataclass(frozen=True)
class KindPredicate:
    """Contains tests of one kind."""

    kind: TestKind

    def __str__(self) -> str:
        return f"{self.kind}()"


@dataclass(frozen=True)
class AnnotationPredicate:
    """Contains tests carrying an annotation."""

    annotation: Annotation

    def __str__(self) -> str:
        match self.annotation:
            case Custom(name=name):
                return f"custom({name})"
            case _:
                return "skip()"


@dataclass(frozen=True)
class IdMatch:
    """Contains tests whose identifier, or a part of it, matches."""

    scope: Scope
    matcher: Matcher

    def __str__(self) -> str:
        function = {"full": "id", "module": "mod", "name": "name"}[self.scope]
        return f"{function}({self.matcher})"


@dataclass(frozen=True)
class UnaryOp:
    operator: UnaryOperator
    operand: "Node"

    def __str__(self) -> str:
        operand, depth = strip_complements(self)
        return "!" * depth + _group(operand)


@dataclass(frozen=True)
class BinaryOp:
    operator: BinaryOperator
    left: "Node"
    right: "Node"

    def __str__(self) -> str:
        symbol = BINARY_SYMBOLS[self.operator]
        return f" {symbol} ".join(_group(operand) for operand in chain(self))


type Node = (
    Empty | Universe | KindPredicate | AnnotationPredicate | IdMatch | UnaryOp | BinaryOp
)

BINARY_SYMBOLS: dict[BinaryOperator, str] = {
    "union": "|",
    "intersect": "&",
    "difference": "-",
    "symmetric-difference": "^",
}


def _group(node: Node) -> str:
    if isinstance(node, BinaryOp):
        return f"({node})"
    return str(node)


def chain(node: BinaryOp) -> Sequence[Node]:
    """Operands of the left-nested chain of `node`'s operator, leftmost first.

    `a | b | c` parses as `(a | b) | c` and yields `[a, b, c]`. The chain is
    walked in a loop so arbitrarily long chains do not recurse.
    """
    operands: list[Node] = [node.right]
    left = node.left
    while isinstance(left, BinaryOp) and left.operator == node.operator:
        operands.append(left.right)
        left = left.left
    operands.append(left)
    operands.reverse()
    return operands


def strip_complements(node: UnaryOp) -> tuple[Node, int]:
    """The innermost operand of nested complements and how many were removed."""
    operand: Node = node
    depth = 0
    while isinstance(operand, UnaryOp):
        operand = operand.operand
        depth += 1
    return operand, depth


def union(left: Node, right: Node) -> BinaryOp:
    return BinaryOp("union", left, right)


def intersect(left: Node, right: Node) -> BinaryOp:
    return BinaryOp("intersect", left, right)


def difference(left: Node, right: Node) -> BinaryOp:
    return BinaryOp("difference", left, right)


def symmetric_difference(left: Node, right: Node) -> BinaryOp:
    return BinaryOp("symmetric-difference", left, right)


def complement(operand: Node) -> UnaryOp:
    return UnaryOp("complement", operand)
