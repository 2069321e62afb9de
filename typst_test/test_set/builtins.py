"""The fixed table of built-in test set constants and functions."""

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Literal

from typst_test.models.test import Custom, Skip
from typst_test.test_set.ast import (
    AnnotationPredicate,
    Empty,
    IdMatch,
    KindPredicate,
    Node,
    Universe,
)
from typst_test.test_set.matcher import Matcher

type Shape = Literal["constant", "pattern", "name"]


@dataclass(frozen=True, kw_only=True)
class Constant:
    """A built-in set taking no arguments, usable bare or called as `name()`."""

    name: str
    node: Node

    shape: Shape = "constant"


@dataclass(frozen=True, kw_only=True)
class PatternFunction:
    """A built-in taking exactly one pattern argument."""

    name: str
    build: Callable[[Matcher], Node]

    shape: Shape = "pattern"


@dataclass(frozen=True, kw_only=True)
class NameFunction:
    """A built-in taking exactly one annotation name argument."""

    name: str
    build: Callable[[str], Node]

    shape: Shape = "name"


type Builtin = Constant | PatternFunction | NameFunction

BUILTINS: Mapping[str, Builtin] = {
    builtin.name: builtin
    for builtin in (
        Constant(name="none", node=Empty()),
        Constant(name="all", node=Universe()),
        Constant(name="compile-only", node=KindPredicate("compile-only")),
        Constant(name="ephemeral", node=KindPredicate("ephemeral")),
        Constant(name="persistent", node=KindPredicate("persistent")),
        Constant(name="skip", node=AnnotationPredicate(Skip())),
        PatternFunction(name="id", build=lambda matcher: IdMatch("full", matcher)),
        PatternFunction(name="mod", build=lambda matcher: IdMatch("module", matcher)),
        PatternFunction(name="name", build=lambda matcher: IdMatch("name", matcher)),
        NameFunction(name="custom", build=lambda name: AnnotationPredicate(Custom(name))),
    )
}


def lookup(name: str) -> Builtin | None:
    """Return the built-in with this name, if there is one."""
    return BUILTINS.get(name)
