"""Test set expression language."""

from typst_test.test_set.errors import ParseError, SemanticError, TestSetError
from typst_test.test_set.evaluator import evaluate, with_implicit_skip
from typst_test.test_set.parser import TestSetExpression, parse

__all__ = [
    "ParseError",
    "SemanticError",
    "TestSetError",
    "TestSetExpression",
    "evaluate",
    "parse",
    "with_implicit_skip",
]
