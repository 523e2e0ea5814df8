"""
Error taxonomy of the receipt ledger.

Every failure raised by the repository, query and schema layers derives from
LedgerError, so callers can catch the whole family or a single kind.
"""

from typing import Any, Optional


class LedgerError(Exception):
    """Base class for all ledger failures."""

    retryable = False


class ValidationError(LedgerError):
    """Caller-supplied data violates a domain rule."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class UnknownReferenceError(LedgerError):
    """A write referenced a Store, Receipt or Item that does not exist."""

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"unknown {entity.lower()} {entity_id}")


class NotFoundError(LedgerError):
    """A read targeted an id that does not exist."""

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class DuplicateError(LedgerError):
    """An equivalent Store or Receipt already exists."""

    def __init__(self, entity: str, existing_id: int, detail: str = ""):
        self.entity = entity
        self.existing_id = existing_id
        message = f"{entity} already exists (id={existing_id})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class StorageUnavailableError(LedgerError):
    """Transient storage failure (lock timeout, lost connection, serialization conflict)."""

    retryable = True

    def __init__(self, message: str, original: Optional[BaseException] = None):
        self.original = original
        super().__init__(message)


class SchemaError(LedgerError):
    """The physical layout could not be created or conflicts with the expected one."""
