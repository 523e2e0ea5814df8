"""
Pytest configuration - shared fixtures
"""
import sys
import os
import sqlite3
from datetime import date
from typing import Dict, Generator, List

import pytest
from sqlalchemy.engine import Engine

# Add backend directory to sys.path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../backend"))

from receipt_ledger.config import Settings
from receipt_ledger.database import Database, create_ledger_engine
from receipt_ledger.services.ledger_repository import LedgerRepository
from receipt_ledger.services.query_service import QueryService
from receipt_ledger.services.schema_manager import ensure_schema


@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "receipts.db")


@pytest.fixture
def ledger_settings(db_path, tmp_path) -> Settings:
    """Settings pointing at a fresh SQLite file; .env files are ignored."""
    return Settings(
        _env_file=None,
        DATABASE_URL=f"sqlite:///{db_path}",
        DATABASE_TIMEOUT=5.0,
        LOG_DIR=str(tmp_path / "logs"),
    )


@pytest.fixture
def engine(ledger_settings) -> Generator[Engine, None, None]:
    engine = create_ledger_engine(ledger_settings)
    ensure_schema(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def db(engine, ledger_settings) -> Database:
    return Database(engine, ledger_settings)


@pytest.fixture
def repository(db) -> LedgerRepository:
    return LedgerRepository(db)


@pytest.fixture
def queries(db) -> QueryService:
    return QueryService(db)


@pytest.fixture
def store_id(repository) -> int:
    return repository.create_store("Rema 1000", "Oslo")


@pytest.fixture
def sample_items() -> List[Dict]:
    return [
        {"name": "Milk", "quantity": 2, "price": 150, "unit": "l"},
        {"name": "Bread", "price": 3490, "unit": "ea"},
        {"name": "Apples", "quantity": 3, "price": 899, "unit": "kg"},
    ]


@pytest.fixture
def populated_db(repository, store_id, sample_items) -> Dict[str, int]:
    """Two stores and four receipts spread over three dates."""
    other_store = repository.create_store("Kiwi", "Bergen")
    ids = {
        "store": store_id,
        "other_store": other_store,
        "jan_05": repository.create_receipt(store_id, date(2024, 1, 5), sample_items),
        "jan_03": repository.create_receipt(store_id, date(2024, 1, 3), sample_items[:1]),
        "jan_05_other": repository.create_receipt(other_store, date(2024, 1, 5), []),
        "feb_01": repository.create_receipt(other_store, date(2024, 2, 1), sample_items[1:]),
    }
    return ids


@pytest.fixture
def raw_rows(db_path):
    """Read table contents straight from the database file, bypassing the ledger."""
    def _rows(sql: str, params=()) -> list:
        conn = sqlite3.connect(db_path)
        try:
            return conn.execute(sql, params).fetchall()
        finally:
            conn.close()
    return _rows
