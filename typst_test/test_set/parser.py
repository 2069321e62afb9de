"""Operator-precedence parser for test set expressions.

Precedence, lowest first, all binary operators left-associative:

1. union (`|`, `or`) and difference (`-`, `\\`)
2. intersection (`&`, `and`)
3. symmetric difference (`^`, `xor`)
4. prefix complement (`!`, `not`)

Built-in names are resolved while parsing, so a successfully parsed
expression never refers to an unknown function.
"""

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass

from typst_test.models.test import is_valid_segment
from typst_test.test_set.ast import BinaryOp, BinaryOperator, IdMatch, Node, complement
from typst_test.test_set.builtins import Constant, NameFunction, PatternFunction, lookup
from typst_test.test_set.errors import ParseError, SemanticError
from typst_test.test_set.lexer import Token, TokenKind, byte_offset, tokenize
from typst_test.test_set.matcher import Contains, Exact, Glob, Matcher, Regex

log = logging.getLogger(__name__)

LEVELS: Sequence[frozenset[TokenKind]] = (
    frozenset({"union", "difference"}),
    frozenset({"intersect"}),
    frozenset({"xor"}),
)

OPERATORS: dict[TokenKind, BinaryOperator] = {
    "union": "union",
    "difference": "difference",
    "intersect": "intersect",
    "xor": "symmetric-difference",
}

ALL_MODIFIER = re.compile(r"[ \t\r\n]*all:")


@dataclass(frozen=True, kw_only=True)
class Argument:
    """A function argument, either a literal word/pattern or a sub-expression."""

    position: int
    literal: Token | None = None
    node: Node | None = None


class Parser:
    """Recursive descent parser over the token stream of one expression."""

    def __init__(self, source: str) -> None:
        self.source = source
        self.tokens = tokenize(source)
        self.index = 0

    @property
    def peek(self) -> Token:
        return self.tokens[self.index]

    def peek_after(self) -> Token:
        return self.tokens[min(self.index + 1, len(self.tokens) - 1)]

    def advance(self) -> Token:
        token = self.tokens[self.index]
        if token.kind != "eof":
            self.index += 1
        return token

    def expect(self, kind: TokenKind, expected: str) -> Token:
        if self.peek.kind != kind:
            raise self.unexpected(self.peek, expected)
        return self.advance()

    def unexpected(self, token: Token, expected: str) -> ParseError:
        return ParseError(
            offset=self.offset(token.position), expected=expected, found=token.describe()
        )

    def semantic_error(self, token: Token | int, message: str) -> SemanticError:
        position = token if isinstance(token, int) else token.position
        return SemanticError(message, offset=self.offset(position))

    def offset(self, position: int) -> int:
        return byte_offset(self.source, position)

    def parse(self) -> Node:
        """Parse the whole input, rejecting empty input and trailing tokens."""
        if self.peek.kind == "eof":
            raise self.unexpected(self.peek, "expression")

        try:
            node = self.expression()
        except RecursionError:
            raise self.unexpected(self.peek, "less deeply nested expression") from None
        if self.peek.kind != "eof":
            raise self.unexpected(self.peek, "operator or end of input")
        return node

    def expression(self, level: int = 0) -> Node:
        if level == len(LEVELS):
            return self.unary()

        left = self.expression(level + 1)
        while self.peek.kind in LEVELS[level]:
            operator = OPERATORS[self.advance().kind]
            right = self.expression(level + 1)
            left = BinaryOp(operator, left, right)
        return left

    def unary(self) -> Node:
        depth = 0
        while self.peek.kind == "not":
            self.advance()
            depth += 1
        node = self.term()
        for _ in range(depth):
            node = complement(node)
        return node

    def term(self) -> Node:
        token = self.peek
        match token.kind:
            case "lparen":
                self.advance()
                node = self.expression()
                self.expect("rparen", "')'")
                return node
            case "pattern":
                self.advance()
                return IdMatch("full", self.matcher(token))
            case "word":
                self.advance()
                if self.peek.kind == "lparen":
                    return self.call(token)
                return self.bare_word(token)
            case _:
                raise self.unexpected(token, "expression")

    def bare_word(self, token: Token) -> Node:
        match lookup(token.text):
            case Constant(node=node):
                return node
            case PatternFunction() | NameFunction():
                raise self.semantic_error(
                    token, f"function {token.text!r} must be called with an argument"
                )
            case None:
                return IdMatch("full", Exact(token.text))

    def call(self, name: Token) -> Node:
        self.expect("lparen", "'('")
        arguments: list[Argument] = []
        if self.peek.kind != "rparen":
            arguments.append(self.argument())
            while self.peek.kind == "comma":
                self.advance()
                arguments.append(self.argument())
        self.expect("rparen", "',' or ')'")
        return self.resolve(name, arguments)

    def argument(self) -> Argument:
        token = self.peek
        if token.kind in {"word", "pattern"} and self.peek_after().kind in {
            "comma",
            "rparen",
        }:
            self.advance()
            return Argument(position=token.position, literal=token)
        return Argument(position=token.position, node=self.expression())

    def resolve(self, name: Token, arguments: Sequence[Argument]) -> Node:
        builtin = lookup(name.text)
        if builtin is None:
            raise self.semantic_error(name, f"unknown function {name.text!r}")

        if isinstance(builtin, Constant):
            if arguments:
                raise self.semantic_error(
                    arguments[0].position,
                    f"{name.text}() takes no arguments, {len(arguments)} given",
                )
            return builtin.node

        if len(arguments) != 1:
            raise self.semantic_error(
                name,
                f"{name.text}() takes exactly 1 argument, {len(arguments)} given",
            )
        (argument,) = arguments
        literal = argument.literal
        if literal is None:
            raise self.semantic_error(
                argument.position,
                f"{name.text}() expects a {builtin.shape}, not an expression",
            )

        if isinstance(builtin, PatternFunction):
            if literal.kind == "word":
                return builtin.build(Exact(literal.text))
            return builtin.build(self.matcher(literal))

        if literal.kind == "pattern" and literal.pattern_kind != "exact":
            raise self.semantic_error(
                literal,
                f"{name.text}() expects a name, not a {literal.pattern_kind} pattern",
            )
        if not is_valid_segment(literal.text):
            raise self.semantic_error(
                literal, f"{name.text}() expects a name, got {literal.text!r}"
            )
        return builtin.build(literal.text)

    def matcher(self, token: Token) -> Matcher:
        try:
            match token.pattern_kind:
                case "exact":
                    return Exact(token.text)
                case "contains":
                    return Contains(token.text)
                case "regex":
                    return Regex.compile(token.text)
                case _:
                    return Glob.compile(token.text)
        except re.error as exc:
            raise ParseError(
                offset=self.offset(token.position),
                expected=f"valid {token.pattern_kind} pattern",
                found=f"{token.text!r} ({exc})",
            ) from exc


def parse(expression: str) -> Node:
    """Parse an expression into a test set AST.

    Raises:
        ParseError: If the expression is malformed
        SemanticError: If it refers to unknown built-ins or misuses them

    """
    node = Parser(expression).parse()
    log.debug("Parsed test set expression %r as %s", expression, node)
    return node


@dataclass(frozen=True, kw_only=True)
class TestSetExpression:
    """A parsed selection expression and its optional `all:` modifier.

    The `all:` prefix confirms that a destructive operation is meant to
    apply to every selected test.
    """

    __test__ = False

    source: str
    node: Node
    all_modifier: bool = False

    @classmethod
    def parse(cls, source: str) -> "TestSetExpression":
        if match := ALL_MODIFIER.match(source):
            # blank the prefix out so error offsets still point into `source`
            masked = " " * match.end() + source[match.end() :]
            return cls(source=source, node=parse(masked), all_modifier=True)
        return cls(source=source, node=parse(source))
