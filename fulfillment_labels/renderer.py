"""
LabelSheetRenderer -- draws QR label sheets as PDF.

Responsibility:
    Turns a sequence of inventory items into a printable PDF: one QR code
    carrying the item's payload plus SKU, id and batch text lines per
    label, placed by ``fulfillment_labels.layout``.

Architecture position:
    Outer layer.  Called by ProductionService.render_label_sheet; the
    kernel treats the resulting ``LabelSheet`` as an opaque artifact.

Failure modes:
    - ValueError when asked to render no items.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass
from io import BytesIO

from reportlab.graphics import renderPDF
from reportlab.graphics.barcode.qr import QrCodeWidget
from reportlab.graphics.shapes import Drawing
from reportlab.pdfgen import canvas

from fulfillment_kernel.domain.types import InventoryItemSnapshot
from fulfillment_kernel.logging_config import get_logger
from fulfillment_labels.layout import (
    DEFAULT_GEOMETRY,
    LabelGeometry,
    LabelPlacement,
    LabelSheetLayout,
    compute_layout,
)

logger = get_logger("labels.renderer")


@dataclass(frozen=True)
class LabelSheet:
    pdf: bytes
    layout: LabelSheetLayout

    @property
    def label_count(self) -> int:
        return self.layout.label_count

    @property
    def page_count(self) -> int:
        return self.layout.page_count


def label_lines(item: InventoryItemSnapshot) -> tuple[str, str, str]:
    return (item.sku, f"ID: {item.id}", f"Batch: {item.batch_id or '-'}")


def label_payload(item: InventoryItemSnapshot) -> str:
    if item.qr_payload:
        return item.qr_payload
    return json.dumps({"id": item.id, "sku": item.sku, "batch_id": item.batch_id})


class LabelSheetRenderer:
    """
    Contract:
        ``render(items)`` preserves the order of ``items``; the same items
        and geometry always yield the same PDF bytes.
    """

    def __init__(self, geometry: LabelGeometry = DEFAULT_GEOMETRY):
        self._geometry = geometry

    @property
    def geometry(self) -> LabelGeometry:
        return self._geometry

    def render(self, items: Sequence[InventoryItemSnapshot]) -> LabelSheet:
        if not items:
            raise ValueError("no items to label")
        geometry = self._geometry
        layout = compute_layout(len(items), geometry)

        buffer = BytesIO()
        pdf = canvas.Canvas(
            buffer,
            pagesize=(geometry.page_width, geometry.page_height),
            invariant=1,
        )
        for page in layout.pages:
            for placement in page.placements:
                self._draw_label(pdf, placement, items[placement.index])
            pdf.showPage()
        pdf.save()

        logger.info(
            "label_sheet_rendered",
            extra={"label_count": layout.label_count, "page_count": layout.page_count},
        )
        return LabelSheet(pdf=buffer.getvalue(), layout=layout)

    def _draw_label(
        self,
        pdf: canvas.Canvas,
        placement: LabelPlacement,
        item: InventoryItemSnapshot,
    ) -> None:
        size = self._geometry.qr_size
        widget = QrCodeWidget(label_payload(item))
        x0, y0, x1, y1 = widget.getBounds()
        drawing = Drawing(
            size, size, transform=[size / (x1 - x0), 0, 0, size / (y1 - y0), 0, 0]
        )
        drawing.add(widget)
        renderPDF.draw(drawing, pdf, placement.qr_x, placement.qr_y)

        pdf.setFont(self._geometry.font_name, self._geometry.font_size)
        for line, baseline in zip(label_lines(item), placement.text_baselines):
            pdf.drawCentredString(placement.text_x, baseline, line)
