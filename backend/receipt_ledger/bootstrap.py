"""
Entry point for embedding the receipt ledger.

Configures logging, creates the engine, makes sure the schema exists and hands
back the repository and query service bound to it.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from receipt_ledger.config import Settings, settings as default_settings
from receipt_ledger.database import Database, create_ledger_engine
from receipt_ledger.logger import setup_logging
from receipt_ledger.services.ledger_repository import LedgerRepository
from receipt_ledger.services.query_service import QueryService
from receipt_ledger.services.schema_manager import ensure_schema

logger = logging.getLogger(__name__)


@dataclass
class Ledger:
    db: Database
    repository: LedgerRepository = field(init=False)
    queries: QueryService = field(init=False)

    def __post_init__(self):
        self.repository = LedgerRepository(self.db)
        self.queries = QueryService(self.db)

    def close(self) -> None:
        logger.info("Shutting down ledger...")
        self.db.dispose()

    def __enter__(self) -> "Ledger":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def open_ledger(config: Optional[Settings] = None) -> Ledger:
    """
    Build a ready-to-use ledger.

    Raises:
        SchemaError: the database is unreachable or its tables conflict with
            the ledger layout. The engine is disposed before raising.
    """
    config = config or default_settings
    setup_logging(config)

    logger.info("Initializing database...")
    engine = create_ledger_engine(config)
    try:
        ensure_schema(engine)
    except Exception:
        engine.dispose()
        raise
    logger.info("Database initialized successfully")

    return Ledger(Database(engine, config))
