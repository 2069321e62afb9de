"""Errors raised while parsing test set expressions."""


class TestSetError(Exception):
    """Base for errors that reject a whole test set expression.

    `offset` is a UTF-8 byte offset into the expression.
    """

    __test__ = False

    def __init__(self, message: str, *, offset: int) -> None:
        super().__init__(f"{message} (at offset {offset})")
        self.message = message
        self.offset = offset


class ParseError(TestSetError):
    """The expression is not syntactically valid."""

    def __init__(self, *, offset: int, expected: str, found: str) -> None:
        super().__init__(f"expected {expected}, found {found}", offset=offset)
        self.expected = expected
        self.found = found


class SemanticError(TestSetError):
    """The expression is well-formed but refers to unknown or misused built-ins."""
