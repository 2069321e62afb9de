"""Tests for annotation parsing."""

from pathlib import Path

import pytest

from typst_test.annotations import (
    AnnotationError,
    parse_annotation,
    parse_annotations,
    read_annotations,
)
from typst_test.models.test import Custom, Skip


def test_parses_known_annotations() -> None:
    """Skip and custom annotations are recognized."""
    assert parse_annotation("[skip]") == Skip()
    assert parse_annotation("[custom: slow]") == Custom("slow")
    assert parse_annotation("[ custom:slow ]") == Custom("slow")


@pytest.mark.parametrize(
    ("text", "message"),
    [
        ("[unknown]", "Unknown annotation"),
        ("[skip: now]", "takes no argument"),
        ("[custom]", "requires a name"),
        ("[custom: ]", "requires a name"),
        ("[custom: 1slow]", "Invalid custom annotation name"),
        ("[skip", "Malformed annotation"),
    ],
)
def test_rejects_invalid_annotations(text: str, message: str) -> None:
    """Unknown and malformed annotations raise AnnotationError."""
    with pytest.raises(AnnotationError, match=message):
        parse_annotation(text)


def test_scans_only_leading_block() -> None:
    """Scanning stops at the first line that is not an annotation line."""
    lines = [
        "/// [skip]",
        "/// [custom: slow]",
        "/// Some documentation",
        "/// [custom: ignored]",
        "#set page(width: 10pt)",
    ]

    assert parse_annotations(lines) == (Skip(), Custom("slow"))


def test_stops_at_code() -> None:
    """Annotations after code are ignored."""
    assert parse_annotations(["Hello", "/// [skip]"]) == ()


def test_rejects_repeated_skip() -> None:
    """A second skip annotation is an error."""
    with pytest.raises(AnnotationError, match="only be given once"):
        parse_annotations(["/// [skip]", "/// [skip]"])


def test_allows_multiple_custom_annotations() -> None:
    """Different custom annotations may be combined."""
    assert parse_annotations(["/// [custom: a]", "/// [custom: b]"]) == (
        Custom("a"),
        Custom("b"),
    )


def test_reads_annotations_from_script(tmp_path: Path) -> None:
    """Annotations are read from the script file."""
    script = tmp_path / "test.typ"
    script.write_text("/// [custom: slow]\n= Heading\n", encoding="utf-8")

    assert read_annotations(script) == (Custom("slow"),)
