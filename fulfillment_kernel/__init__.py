"""
Fulfillment Kernel

Inventory fulfillment and production-issuance engine for garments
identified by a structured SKU:
- Exact and universal (alteration) matching of demand to stock
- Item and request lifecycles with a single wash-on-assignment policy
- Bin capacity ledger with exclusive membership
- SKU-level FIFO waitlist
- Production batches with unique item ids and QR label sheets
"""

__version__ = "0.1.0"
