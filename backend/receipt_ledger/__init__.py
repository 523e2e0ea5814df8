"""
Receipt ledger: validated, transactional storage of store receipts and their items.
"""

from receipt_ledger.bootstrap import Ledger, open_ledger
from receipt_ledger.exceptions import (
    DuplicateError,
    LedgerError,
    NotFoundError,
    SchemaError,
    StorageUnavailableError,
    UnknownReferenceError,
    ValidationError,
)

__version__ = "0.1.0"

__all__ = [
    "Ledger",
    "open_ledger",
    "LedgerError",
    "ValidationError",
    "UnknownReferenceError",
    "NotFoundError",
    "DuplicateError",
    "StorageUnavailableError",
    "SchemaError",
]
