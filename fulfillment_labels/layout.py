"""
Label sheet layout -- pure placement of QR labels on printer pages.

Responsibility:
    Decides which page, column and row each label lands on and where its
    QR code and text lines go.  Knows nothing about PDF output; the
    renderer draws whatever this module places.

Invariants enforced:
    - Labels are placed in input order, filling a row left to right, then
      rows top to bottom, then a new page.
    - A label is never split across pages: a page holds
      ``columns * rows`` labels where ``rows`` counts the labels whose full
      height fits below the top margin.
    - Zero labels produce zero pages.

Coordinates are PDF points with the origin at the bottom-left corner of
the page.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

INCH = 72.0

TEXT_GAP_IN = 0.1
LINE_SPACING_IN = 0.15


@dataclass(frozen=True)
class LabelGeometry:
    """Page and label dimensions, in points."""

    page_width: float = 2.0 * INCH
    page_height: float = 11.0 * INCH
    label_width: float = 2.0 * INCH
    label_height: float = 2.5 * INCH
    margin: float = 0.125 * INCH
    qr_size: float = 1.75 * INCH
    font_name: str = "Helvetica"
    font_size: float = 8.0

    def __post_init__(self) -> None:
        if min(self.page_width, self.page_height, self.label_width, self.label_height) <= 0:
            raise ValueError("page and label dimensions must be positive")
        if self.label_height + self.margin > self.page_height:
            raise ValueError("a label plus margin must fit on the page")
        if self.qr_size > min(self.label_width, self.label_height):
            raise ValueError("qr_size must fit inside a label")

    @classmethod
    def from_inches(
        cls,
        page_width: float,
        page_height: float,
        label_width: float,
        label_height: float,
        margin: float,
        qr_size: float,
        font_name: str = "Helvetica",
        font_size: float = 8.0,
    ) -> LabelGeometry:
        return cls(
            page_width=page_width * INCH,
            page_height=page_height * INCH,
            label_width=label_width * INCH,
            label_height=label_height * INCH,
            margin=margin * INCH,
            qr_size=qr_size * INCH,
            font_name=font_name,
            font_size=font_size,
        )

    @property
    def columns(self) -> int:
        return max(1, int(self.page_width // self.label_width))

    @property
    def rows(self) -> int:
        return max(1, int((self.page_height - self.margin) // self.label_height))

    @property
    def labels_per_page(self) -> int:
        return self.columns * self.rows


DEFAULT_GEOMETRY = LabelGeometry()


@dataclass(frozen=True)
class LabelPlacement:
    """Where one label goes.

    ``x`` is the label's left edge and ``top`` its upper edge.  ``qr_x`` and
    ``qr_y`` are the QR code's lower-left corner; ``text_x`` is the centre
    line for the text and ``text_baselines`` one baseline per text line.
    """

    index: int
    page: int
    column: int
    row: int
    x: float
    top: float
    qr_x: float
    qr_y: float
    text_x: float
    text_baselines: tuple[float, ...]


@dataclass(frozen=True)
class LabelPage:
    number: int
    placements: tuple[LabelPlacement, ...]


@dataclass(frozen=True)
class LabelSheetLayout:
    geometry: LabelGeometry
    pages: tuple[LabelPage, ...]

    @property
    def page_count(self) -> int:
        return len(self.pages)

    @property
    def label_count(self) -> int:
        return sum(len(p.placements) for p in self.pages)

    def placements(self) -> Iterator[LabelPlacement]:
        for page in self.pages:
            yield from page.placements


def place(index: int, geometry: LabelGeometry, text_lines: int = 3) -> LabelPlacement:
    """Placement of the ``index``-th label (zero-based)."""
    per_page = geometry.labels_per_page
    page, slot = divmod(index, per_page)
    row, column = divmod(slot, geometry.columns)

    x = column * geometry.label_width
    top = geometry.page_height - (geometry.margin + row * geometry.label_height)
    qr_x = x + (geometry.label_width - geometry.qr_size) / 2
    qr_y = top - geometry.qr_size
    first_baseline = qr_y - TEXT_GAP_IN * INCH
    baselines = tuple(
        first_baseline - n * LINE_SPACING_IN * INCH for n in range(text_lines)
    )
    return LabelPlacement(
        index=index,
        page=page,
        column=column,
        row=row,
        x=x,
        top=top,
        qr_x=qr_x,
        qr_y=qr_y,
        text_x=x + geometry.label_width / 2,
        text_baselines=baselines,
    )


def compute_layout(
    count: int,
    geometry: LabelGeometry = DEFAULT_GEOMETRY,
    text_lines: int = 3,
) -> LabelSheetLayout:
    if count < 0:
        raise ValueError(f"label count must not be negative, got {count}")
    placements = [place(i, geometry, text_lines) for i in range(count)]
    pages: list[LabelPage] = []
    for placement in placements:
        if not pages or pages[-1].number != placement.page:
            pages.append(LabelPage(number=placement.page, placements=()))
        last = pages[-1]
        pages[-1] = LabelPage(number=last.number, placements=last.placements + (placement,))
    return LabelSheetLayout(geometry=geometry, pages=tuple(pages))
