"""SQLAlchemy ORM models.  Importing this package registers every table."""

from fulfillment_kernel.models.event_log import EventLog
from fulfillment_kernel.models.inventory import Bin, InventoryItem
from fulfillment_kernel.models.production import PendingProductionRequest, ProductionBatch
from fulfillment_kernel.models.request import Request
from fulfillment_kernel.models.waitlist import WaitlistEntry

__all__ = [
    "Bin",
    "EventLog",
    "InventoryItem",
    "PendingProductionRequest",
    "ProductionBatch",
    "Request",
    "WaitlistEntry",
]
