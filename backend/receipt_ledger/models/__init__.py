"""
Database models for the receipt ledger.

All SQLAlchemy models are imported here so Base.metadata knows every table.
"""

from receipt_ledger.models.store import Store
from receipt_ledger.models.receipt import Receipt, Item

__all__ = [
    "Store",
    "Receipt",
    "Item",
]
