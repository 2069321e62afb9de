"""Parsing of test annotations from the leading doc comment of a test script.

Annotations are written one per line in the `///` comment block at the very
top of a test script:

    /// [skip]
    /// [custom: slow]

    #set page(width: 100pt)

Scanning stops at the first line that is not an annotation line.
"""

import re
from collections.abc import Iterable, Sequence
from pathlib import Path

from typst_test.models.test import Annotation, Custom, Skip, is_valid_segment

DOC_COMMENT = "///"
BRACKETED = re.compile(r"\[(?P<body>[^\[\]]*)\]")


class AnnotationError(ValueError):
    """Raised for malformed or unknown annotations."""


def parse_annotation(text: str) -> Annotation:
    """Parse a single bracketed annotation such as `[custom: slow]`."""
    match = BRACKETED.fullmatch(text.strip())
    if match is None:
        raise AnnotationError(f"Malformed annotation: {text.strip()!r}")

    key, separator, argument = match.group("body").partition(":")
    key = key.strip()
    argument = argument.strip()

    if key == "skip":
        if separator:
            raise AnnotationError("The skip annotation takes no argument")
        return Skip()

    if key == "custom":
        if not separator or not argument:
            raise AnnotationError("The custom annotation requires a name")
        if not is_valid_segment(argument):
            raise AnnotationError(f"Invalid custom annotation name: {argument!r}")
        return Custom(argument)

    raise AnnotationError(f"Unknown annotation: {key!r}")


def parse_annotations(lines: Iterable[str]) -> Sequence[Annotation]:
    """Parse the annotations in the leading doc comment block of `lines`.

    Raises:
        AnnotationError: For unknown or malformed annotations in the block,
            or a repeated skip annotation

    """
    annotations: list[Annotation] = []
    for line in lines:
        stripped = line.strip()
        if not stripped.startswith(DOC_COMMENT):
            break

        content = stripped.removeprefix(DOC_COMMENT).strip()
        if not content.startswith("["):
            break

        annotation = parse_annotation(content)
        if isinstance(annotation, Skip) and annotation in annotations:
            raise AnnotationError("The skip annotation may only be given once")
        annotations.append(annotation)

    return tuple(annotations)


def read_annotations(script: Path) -> Sequence[Annotation]:
    """Read the annotations of a test script."""
    with script.open(encoding="utf-8") as file:
        return parse_annotations(file)
