"""
Creation and validation of the physical ledger layout.

    Store(id PK, name, location)
    Receipt(id PK, store FK->Store.id, date)
    Item(id PK, name, quantity DEFAULT 1, price, unit[<=3 chars], receipt FK->Receipt.id)
"""

import logging

from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from receipt_ledger.database import Base
from receipt_ledger.exceptions import SchemaError
from receipt_ledger.models import Item, Receipt, Store
from receipt_ledger.models.receipt import UNIT_MAX_LENGTH

logger = logging.getLogger(__name__)

LEDGER_TABLES = [Store.__table__, Receipt.__table__, Item.__table__]

EXPECTED_COLUMNS = {
    "Store": {"id", "name", "location"},
    "Receipt": {"id", "store", "date"},
    "Item": {"id", "name", "quantity", "price", "unit", "receipt"},
}

# table -> (column, referred table, referred column)
EXPECTED_FOREIGN_KEYS = {
    "Receipt": ("store", "Store", "id"),
    "Item": ("receipt", "Receipt", "id"),
}


def ensure_schema(engine: Engine) -> None:
    """
    Create the ledger tables if they are missing and check existing ones.

    Idempotent, safe to call on every start.

    Raises:
        SchemaError: the database is unreachable or an existing table
            conflicts with the expected layout.
    """
    try:
        Base.metadata.create_all(bind=engine, tables=LEDGER_TABLES, checkfirst=True)
        verify_schema(engine)
    except SQLAlchemyError as e:
        logger.error(f"Could not initialize ledger schema: {e}")
        raise SchemaError(f"could not initialize ledger schema: {e}") from e
    logger.info("Ledger schema ready")


def verify_schema(engine: Engine) -> None:
    """Raise SchemaError if a ledger table lacks a column or foreign key, or Item.unit is too wide."""
    inspector = inspect(engine)
    existing = set(inspector.get_table_names())

    for table, expected in EXPECTED_COLUMNS.items():
        if table not in existing:
            raise SchemaError(f"table {table} is missing")
        columns = {column["name"]: column for column in inspector.get_columns(table)}
        missing = expected - set(columns)
        if missing:
            raise SchemaError(
                f"table {table} conflicts with the ledger layout: missing column(s) "
                f"{', '.join(sorted(missing))}"
            )
        if table == "Item":
            length = getattr(columns["unit"]["type"], "length", None)
            if length is not None and length > UNIT_MAX_LENGTH:
                raise SchemaError(
                    f"Item.unit is declared with length {length}, expected at most {UNIT_MAX_LENGTH}"
                )

    for table, (column, referred_table, referred_column) in EXPECTED_FOREIGN_KEYS.items():
        found = any(
            fk["constrained_columns"] == [column]
            and fk["referred_table"] == referred_table
            and fk["referred_columns"] == [referred_column]
            for fk in inspector.get_foreign_keys(table)
        )
        if not found:
            raise SchemaError(
                f"table {table} conflicts with the ledger layout: missing foreign key "
                f"{column} -> {referred_table}.{referred_column}"
            )


def drop_schema(engine: Engine) -> None:
    """Drop the ledger tables (children first)."""
    try:
        Base.metadata.drop_all(bind=engine, tables=LEDGER_TABLES, checkfirst=True)
    except SQLAlchemyError as e:
        raise SchemaError(f"could not drop ledger schema: {e}") from e
    logger.info("Ledger schema dropped")
