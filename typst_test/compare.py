"""Visual comparison of rendered pages against reference pages."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from PIL import Image, ImageChops
from pydantic import Field

from typst_test.models.base import Model

log = logging.getLogger(__name__)


class ComparisonSettings(Model):
    """Thresholds for visual comparison, the defaults require exact equality."""

    max_deviation: int = Field(
        default=0, ge=0, description="Deviating pixels allowed per page"
    )
    min_delta: int = Field(
        default=0,
        ge=0,
        le=255,
        description="Channel difference at which a pixel counts as deviating",
    )


@dataclass(frozen=True, kw_only=True)
class ComparisonResult:
    """Outcome of comparing one output page with one reference page.

    `deviations` is `None` when the dimensions differ, `diff` is set
    whenever the pages are not equal.
    """

    equal: bool
    output_size: tuple[int, int]
    reference_size: tuple[int, int]
    deviations: int | None = None
    diff: Image.Image | None = field(default=None, repr=False, compare=False)

    @property
    def reason(self) -> str | None:
        if self.equal:
            return None
        if self.deviations is None:
            return (
                f"dimensions differ: output {_size(self.output_size)} "
                f"!= reference {_size(self.reference_size)}"
            )
        return f"{self.deviations} pixel(s) deviate"


@dataclass(frozen=True, kw_only=True)
class PageComparison:
    page: int
    result: ComparisonResult


@dataclass(frozen=True, kw_only=True)
class DocumentComparison:
    """Page-by-page comparison of an output document with its reference."""

    output_pages: int
    reference_pages: int
    pages: Sequence[PageComparison] = field(default_factory=tuple)

    @property
    def mismatches(self) -> Sequence[PageComparison]:
        return [page for page in self.pages if not page.result.equal]

    @property
    def equal(self) -> bool:
        return self.output_pages == self.reference_pages and not self.mismatches

    @property
    def reason(self) -> str | None:
        if self.equal:
            return None
        reasons: list[str] = []
        if self.output_pages != self.reference_pages:
            reasons.append(
                f"page count differs: output {self.output_pages} "
                f"!= reference {self.reference_pages}"
            )
        reasons.extend(
            f"page {page.page}: {page.result.reason}" for page in self.mismatches
        )
        return "; ".join(reasons)


def _size(size: tuple[int, int]) -> str:
    return f"{size[0]}x{size[1]}"


def count_deviations(output: Image.Image, reference: Image.Image, min_delta: int) -> int:
    """Count pixels with a red, green or blue difference of at least `min_delta`.

    Both images must be RGB and of equal size. Identical pixels never count,
    even with a `min_delta` of 0.
    """
    red, green, blue = ImageChops.difference(output, reference).split()
    strongest = ImageChops.lighter(ImageChops.lighter(red, green), blue)
    histogram = strongest.histogram()
    return sum(histogram[max(min_delta, 1) :])


def render_diff(output: Image.Image, reference: Image.Image) -> Image.Image:
    """Render the per-channel absolute difference of two pages.

    Pages of different sizes are aligned at their top left corner on a canvas
    large enough for both.
    """
    size = (
        max(output.width, reference.width),
        max(output.height, reference.height),
    )
    if output.size == reference.size == size:
        return ImageChops.difference(output, reference)

    output_canvas = Image.new("RGB", size)
    output_canvas.paste(output, (0, 0))
    reference_canvas = Image.new("RGB", size)
    reference_canvas.paste(reference, (0, 0))
    return ImageChops.difference(output_canvas, reference_canvas)


def compare(
    output: Image.Image,
    reference: Image.Image,
    *,
    max_deviation: int = 0,
    min_delta: int = 0,
) -> ComparisonResult:
    """Compare two pages.

    Pages of different dimensions always differ. Otherwise they differ when
    more than `max_deviation` pixels deviate by at least `min_delta` in any
    color channel.
    """
    output = output.convert("RGB")
    reference = reference.convert("RGB")

    if output.size != reference.size:
        return ComparisonResult(
            equal=False,
            output_size=output.size,
            reference_size=reference.size,
            diff=render_diff(output, reference),
        )

    deviations = count_deviations(output, reference, min_delta)
    equal = deviations <= max_deviation
    return ComparisonResult(
        equal=equal,
        output_size=output.size,
        reference_size=reference.size,
        deviations=deviations,
        diff=None if equal else render_diff(output, reference),
    )


def compare_documents(
    outputs: Sequence[Image.Image],
    references: Sequence[Image.Image],
    settings: ComparisonSettings = ComparisonSettings(),
) -> DocumentComparison:
    """Compare documents page by page, every page pair is compared."""
    pages = [
        PageComparison(
            page=number,
            result=compare(
                output,
                reference,
                max_deviation=settings.max_deviation,
                min_delta=settings.min_delta,
            ),
        )
        for number, (output, reference) in enumerate(
            zip(outputs, references, strict=False), start=1
        )
    ]
    return DocumentComparison(
        output_pages=len(outputs), reference_pages=len(references), pages=pages
    )


def load_pages(paths: Sequence[Path]) -> Sequence[Image.Image]:
    """Load page images fully into memory."""
    pages: list[Image.Image] = []
    for path in paths:
        with Image.open(path) as image:
            image.load()
            pages.append(image.convert("RGB"))
    return pages


def page_files(directory: Path) -> Sequence[Path]:
    """The `<n>.png` page files in `directory`, ordered by page number."""
    if not directory.is_dir():
        return []
    pages = [
        path
        for path in directory.iterdir()
        if path.suffix == ".png" and path.stem.isdigit()
    ]
    return sorted(pages, key=lambda path: int(path.stem))


def compare_directories(
    output_dir: Path,
    reference_dir: Path,
    diff_dir: Path,
    settings: ComparisonSettings = ComparisonSettings(),
) -> tuple[DocumentComparison, Sequence[Path]]:
    """Compare page files on disk, writing a diff image for each mismatched page.

    Returns:
        The comparison and the paths of the written diff images

    """
    comparison = compare_documents(
        load_pages(page_files(output_dir)),
        load_pages(page_files(reference_dir)),
        settings,
    )

    diff_locations: list[Path] = []
    for mismatch in comparison.mismatches:
        if mismatch.result.diff is None:
            continue
        diff_dir.mkdir(parents=True, exist_ok=True)
        path = diff_dir / f"{mismatch.page}.png"
        mismatch.result.diff.save(path)
        log.debug("Wrote diff image %s", path)
        diff_locations.append(path)

    return comparison, diff_locations
