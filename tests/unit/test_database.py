"""
Tests for the database layer - transaction scope and driver error mapping
"""
import sqlite3
from datetime import date

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError, TimeoutError as PoolTimeoutError

from receipt_ledger.database import is_transient_error
from receipt_ledger.exceptions import StorageUnavailableError
from receipt_ledger.models import Store


class FakeDriverError(Exception):
    def __init__(self, message, pgcode=None):
        super().__init__(message)
        self.pgcode = pgcode


def _operational(message, **kwargs):
    return OperationalError("SELECT 1", {}, FakeDriverError(message, **kwargs))


@pytest.mark.unit
class TestIsTransientError:

    @pytest.mark.parametrize("message", [
        "database is locked",
        "Database is busy",
        "Lock wait timeout exceeded; try restarting transaction",
        "server closed the connection unexpectedly",
    ])
    def test_lock_and_connection_failures(self, message):
        assert is_transient_error(_operational(message))

    @pytest.mark.parametrize("message", [
        "no such table: Item",
        "integer overflow",
        "unable to open database file",
    ])
    def test_permanent_failures(self, message):
        assert not is_transient_error(_operational(message))

    def test_serialization_failure_code(self):
        error = IntegrityError("UPDATE", {}, FakeDriverError("conflict", pgcode="40001"))

        assert is_transient_error(error)
        assert is_transient_error(_operational("deadlock detected", pgcode="40P01"))

    def test_invalidated_connection(self):
        error = OperationalError("SELECT 1", {}, FakeDriverError("gone"), connection_invalidated=True)

        assert is_transient_error(error)

    def test_pool_timeout(self):
        assert is_transient_error(PoolTimeoutError("QueuePool limit reached"))

    def test_constraint_violation(self):
        assert not is_transient_error(IntegrityError("INSERT", {}, FakeDriverError("FOREIGN KEY constraint failed")))

    def test_non_driver_errors(self):
        assert not is_transient_error(ValueError("database is locked"))


@pytest.mark.unit
class TestSessionScopes:

    @pytest.fixture
    def item_table_dropped(self, db_path, engine):
        conn = sqlite3.connect(db_path, isolation_level=None)
        try:
            conn.execute("DROP TABLE Item")
        finally:
            conn.close()

    def test_permanent_read_error_is_not_retryable(self, queries, item_table_dropped):
        with pytest.raises(OperationalError, match="no such table"):
            queries.get_item(1)

    def test_permanent_write_error_is_not_retryable(self, repository, store_id, item_table_dropped):
        receipt_id = repository.create_receipt(store_id, date(2024, 1, 5))

        with pytest.raises(OperationalError) as exc_info:
            repository.add_item(receipt_id, {"name": "Eggs", "price": 4250, "unit": "pk"})

        assert not isinstance(exc_info.value, StorageUnavailableError)

    def test_writer_rolls_back_on_error(self, db, raw_rows):
        with pytest.raises(RuntimeError):
            with db.writer() as session:
                session.add(Store(name="Rema 1000", location="Oslo"))
                session.flush()
                raise RuntimeError("abort")

        assert raw_rows("SELECT COUNT(*) FROM Store") == [(0,)]

    def test_writer_commits(self, db, raw_rows):
        with db.writer() as session:
            session.add(Store(name="Rema 1000", location="Oslo"))

        assert raw_rows("SELECT name, location FROM Store") == [("Rema 1000", "Oslo")]
