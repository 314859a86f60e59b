"""
Kernel services.

Every service takes a caller-owned Session plus an injected Clock and
EventSink, flushes its writes and never commits.
"""

from fulfillment_kernel.services.capacity_ledger import CapacityLedger
from fulfillment_kernel.services.event_sink import (
    DatabaseEventSink,
    EventSink,
    LoggingEventSink,
)
from fulfillment_kernel.services.fulfillment_service import FulfillmentService
from fulfillment_kernel.services.item_lifecycle import InventoryItemService
from fulfillment_kernel.services.production_service import ProductionService
from fulfillment_kernel.services.request_lifecycle import RequestService
from fulfillment_kernel.services.waitlist_service import WaitlistService

__all__ = [
    "CapacityLedger",
    "DatabaseEventSink",
    "EventSink",
    "FulfillmentService",
    "InventoryItemService",
    "LoggingEventSink",
    "ProductionService",
    "RequestService",
    "WaitlistService",
]
