"""
Printable QR label sheets for production batches.

``layout`` is pure geometry; ``renderer`` draws it with reportlab.
"""

from fulfillment_labels.layout import (
    LabelGeometry,
    LabelPage,
    LabelPlacement,
    LabelSheetLayout,
    compute_layout,
)
from fulfillment_labels.renderer import LabelSheet, LabelSheetRenderer

__all__ = [
    "LabelGeometry",
    "LabelPage",
    "LabelPlacement",
    "LabelSheet",
    "LabelSheetLayout",
    "LabelSheetRenderer",
    "compute_layout",
]
