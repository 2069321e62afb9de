"""Tokenizer for test set expressions."""

import re
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Literal

from typst_test.test_set.errors import ParseError

type TokenKind = Literal[
    "lparen",
    "rparen",
    "comma",
    "union",
    "difference",
    "intersect",
    "xor",
    "not",
    "word",
    "pattern",
    "eof",
]

type PatternKind = Literal["exact", "contains", "regex", "glob"]

WORD = re.compile(r"[A-Za-z][A-Za-z0-9_-]*(?:/[A-Za-z][A-Za-z0-9_-]*)*")
HEX_ESCAPE = re.compile(r"\{([0-9A-Fa-f]{1,6})\}")

KEYWORDS: dict[str, TokenKind] = {
    "or": "union",
    "and": "intersect",
    "xor": "xor",
    "not": "not",
}

SYMBOLS: dict[str, TokenKind] = {
    "(": "lparen",
    ")": "rparen",
    ",": "comma",
    "|": "union",
    "-": "difference",
    "\\": "difference",
    "&": "intersect",
    "^": "xor",
    "!": "not",
}

PREFIXES: dict[str, PatternKind] = {"=": "exact", "~": "contains"}
DELIMITERS: dict[str, tuple[str, PatternKind]] = {
    "/": ("/", "regex"),
    "<": (">", "glob"),
}

SIMPLE_ESCAPES = {"\\": "\\", '"': '"', "n": "\n", "r": "\r", "t": "\t"}


@dataclass(frozen=True, kw_only=True)
class Token:
    """A lexical token, `position` is a character index into the source."""

    kind: TokenKind
    text: str
    position: int
    pattern_kind: PatternKind | None = None

    def describe(self) -> str:
        """Human readable form used in error messages."""
        match self.kind:
            case "eof":
                return "end of input"
            case "word":
                return f"identifier {self.text!r}"
            case "pattern":
                return f"{self.pattern_kind} pattern"
            case _:
                return repr(self.text)


def byte_offset(source: str, position: int) -> int:
    """Convert a character index into a UTF-8 byte offset."""
    return len(source[:position].encode("utf-8"))


class Lexer:
    """Splits an expression into tokens, whitespace is insignificant."""

    def __init__(self, source: str) -> None:
        self.source = source
        self.position = 0

    def error(self, position: int, expected: str, found: str | None = None) -> ParseError:
        if found is None:
            found = (
                repr(self.source[position])
                if position < len(self.source)
                else "end of input"
            )
        return ParseError(
            offset=byte_offset(self.source, position), expected=expected, found=found
        )

    def tokens(self) -> Iterator[Token]:
        """Yield all tokens, ending with a single `eof` token."""
        while True:
            token = self.next_token()
            yield token
            if token.kind == "eof":
                return

    def next_token(self) -> Token:
        self._skip_whitespace()
        start = self.position
        if start >= len(self.source):
            return Token(kind="eof", text="", position=start)

        char = self.source[start]
        if char in PREFIXES:
            self.position += 1
            text = self._prefixed_body(start)
            return Token(
                kind="pattern", text=text, position=start, pattern_kind=PREFIXES[char]
            )
        if char in DELIMITERS:
            closing, kind = DELIMITERS[char]
            self.position += 1
            text = self._delimited_body(start, closing)
            return Token(kind="pattern", text=text, position=start, pattern_kind=kind)
        if char in SYMBOLS:
            self.position += 1
            return Token(kind=SYMBOLS[char], text=char, position=start)
        if match := WORD.match(self.source, start):
            self.position = match.end()
            word = match.group()
            return Token(kind=KEYWORDS.get(word, "word"), text=word, position=start)

        raise self.error(start, "expression")

    def _skip_whitespace(self) -> None:
        while self.position < len(self.source) and self.source[self.position].isspace():
            self.position += 1

    def _prefixed_body(self, start: int) -> str:
        if self.position < len(self.source) and self.source[self.position] == '"':
            return self._quoted_string()

        depth = 0
        body_start = self.position
        while self.position < len(self.source):
            char = self.source[self.position]
            if char.isspace() or char == ",":
                break
            if char == "(":
                depth += 1
            elif char == ")":
                if depth == 0:
                    break
                depth -= 1
            self.position += 1

        if self.position == body_start:
            raise self.error(self.position, "pattern after " + repr(self.source[start]))
        return self.source[body_start : self.position]

    def _quoted_string(self) -> str:
        opening = self.position
        self.position += 1
        chars: list[str] = []
        while self.position < len(self.source):
            char = self.source[self.position]
            if char == '"':
                self.position += 1
                return "".join(chars)
            if char == "\\":
                chars.append(self._escape())
                continue
            chars.append(char)
            self.position += 1

        raise self.error(opening, 'closing \'"\'', "end of input")

    def _escape(self) -> str:
        escape_start = self.position
        self.position += 1
        if self.position >= len(self.source):
            raise self.error(escape_start, "escape sequence", "end of input")

        char = self.source[self.position]
        if char in SIMPLE_ESCAPES:
            self.position += 1
            return SIMPLE_ESCAPES[char]
        if char == "u" and (match := HEX_ESCAPE.match(self.source, self.position + 1)):
            code_point = int(match.group(1), 16)
            if code_point > 0x10FFFF or 0xD800 <= code_point <= 0xDFFF:
                raise self.error(
                    escape_start, "unicode scalar value", f"U+{code_point:X}"
                )
            self.position = match.end()
            return chr(code_point)

        raise self.error(escape_start, "escape sequence", repr("\\" + char))

    def _delimited_body(self, start: int, closing: str) -> str:
        chars: list[str] = []
        while self.position < len(self.source):
            char = self.source[self.position]
            if char == closing:
                self.position += 1
                if not chars:
                    raise self.error(start, "non-empty pattern", "empty pattern")
                return "".join(chars)
            if (
                char == "\\"
                and self.position + 1 < len(self.source)
                and self.source[self.position + 1] == closing
            ):
                chars.append(closing)
                self.position += 2
                continue
            chars.append(char)
            self.position += 1

        raise self.error(start, f"closing {closing!r}", "end of input")


def tokenize(source: str) -> list[Token]:
    """Tokenize a whole expression."""
    return list(Lexer(source).tokens())
