"""
LabelSheetRenderer: PDF output for batch label sheets.
"""

import json

import pytest

from fulfillment_kernel.domain.types import (
    InventoryItemSnapshot,
    ItemAvailability,
    ItemOrigin,
)
from fulfillment_labels import LabelGeometry, LabelSheetRenderer
from fulfillment_labels.renderer import label_lines, label_payload


def _item(n: int, batch_id: str | None = "batch_ABCD1234") -> InventoryItemSnapshot:
    item_id = f"I{n:04d}"
    return InventoryItemSnapshot(
        id=item_id,
        sku="ST-32-X-36-RAW",
        status1=ItemOrigin.PRODUCTION,
        status2=ItemAvailability.UNCOMMITTED,
        batch_id=batch_id,
        qr_payload=json.dumps({"id": item_id, "sku": "ST-32-X-36-RAW", "batch_id": batch_id}),
    )


class TestLabelText:

    def test_lines(self):
        assert label_lines(_item(1)) == ("ST-32-X-36-RAW", "ID: I0001", "Batch: batch_ABCD1234")

    def test_missing_batch(self):
        assert label_lines(_item(1, batch_id=None))[2] == "Batch: -"

    def test_payload_prefers_stored_value(self):
        item = _item(7)
        assert label_payload(item) == item.qr_payload

    def test_payload_fallback(self):
        bare = InventoryItemSnapshot(
            id="I9", sku="ST-32-X-30-RAW",
            status1=ItemOrigin.STOCK, status2=ItemAvailability.UNCOMMITTED,
        )
        assert json.loads(label_payload(bare)) == {
            "id": "I9", "sku": "ST-32-X-30-RAW", "batch_id": None,
        }


class TestRender:

    def test_three_labels_one_page(self, captured_logs):
        sheet = LabelSheetRenderer().render([_item(n) for n in range(3)])

        assert sheet.pdf.startswith(b"%PDF")
        assert sheet.label_count == 3
        assert sheet.page_count == 1
        rendered = [r for r in captured_logs() if r["message"] == "label_sheet_rendered"]
        assert rendered[0]["page_count"] == 1

    def test_overflow_starts_new_page(self):
        sheet = LabelSheetRenderer().render([_item(n) for n in range(9)])
        assert sheet.page_count == 3
        assert [len(p.placements) for p in sheet.layout.pages] == [4, 4, 1]

    def test_deterministic_bytes(self):
        items = [_item(n) for n in range(5)]
        renderer = LabelSheetRenderer()
        assert renderer.render(items).pdf == renderer.render(items).pdf

    def test_custom_geometry(self):
        renderer = LabelSheetRenderer(LabelGeometry.from_inches(4.0, 11.0, 2.0, 2.5, 0.125, 1.75))
        sheet = renderer.render([_item(n) for n in range(8)])
        assert sheet.page_count == 1

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            LabelSheetRenderer().render([])
