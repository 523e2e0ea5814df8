"""
Read side of the receipt ledger.

Each call runs in one read transaction, so a receipt and its items always
come from the same committed snapshot. Results are pydantic models detached
from the session.

Totals are summed in Python over the fetched (quantity, price) pairs, so they
are exact integers however large the receipt grows.
"""

import logging
from collections import defaultdict
from datetime import date
from typing import Any, Dict, Iterator, List, Optional, Tuple

from pydantic import TypeAdapter, ValidationError as PydanticValidationError
from sqlalchemy import and_, or_
from sqlalchemy.orm import selectinload

from receipt_ledger.database import Database
from receipt_ledger.exceptions import NotFoundError, ValidationError
from receipt_ledger.models import Item, Receipt, Store
from receipt_ledger.schemas import (
    CalendarDate,
    ItemResponse,
    ReceiptResponse,
    ReceiptSummary,
    StoreResponse,
)

logger = logging.getLogger(__name__)

_date_adapter = TypeAdapter(CalendarDate)

DEFAULT_BATCH_SIZE = 100


def _parse_date(value: Any, field: str) -> Optional[date]:
    if value is None:
        return None
    try:
        return _date_adapter.validate_python(value)
    except PydanticValidationError as e:
        raise ValidationError(field, e.errors()[0]["msg"]) from None


class ReceiptListing:
    """
    Receipts matching a filter, ordered by date then id.

    Iterating runs the query; iterating again runs it again, so the listing
    can be reused. Rows are fetched ``batch_size`` at a time, each batch in
    its own short read transaction that is closed before any row is handed
    out, so a paused or abandoned iteration holds no lock. A batch resumes
    after the last (date, id) seen: receipts committed meanwhile show up if
    they sort later, deleted ones that were not yet fetched are skipped.
    """

    def __init__(self, db: Database, store_id: Optional[int] = None,
                 date_from: Optional[date] = None, date_to: Optional[date] = None,
                 batch_size: int = DEFAULT_BATCH_SIZE):
        self._db = db
        self.store_id = store_id
        self.date_from = date_from
        self.date_to = date_to
        self.batch_size = batch_size

    def _fetch_batch(self, after: Optional[Tuple[date, int]]) -> List[ReceiptSummary]:
        with self._db.reader() as session:
            query = session.query(Receipt)
            if self.store_id is not None:
                query = query.filter(Receipt.store_id == self.store_id)
            if self.date_from is not None:
                query = query.filter(Receipt.date >= self.date_from)
            if self.date_to is not None:
                query = query.filter(Receipt.date <= self.date_to)
            if after is not None:
                last_date, last_id = after
                query = query.filter(or_(
                    Receipt.date > last_date,
                    and_(Receipt.date == last_date, Receipt.id > last_id),
                ))
            rows = (
                query.order_by(Receipt.date.asc(), Receipt.id.asc())
                .limit(self.batch_size)
                .all()
            )
            return [ReceiptSummary.model_validate(receipt) for receipt in rows]

    def __iter__(self) -> Iterator[ReceiptSummary]:
        after = None
        while True:
            batch = self._fetch_batch(after)
            yield from batch
            if len(batch) < self.batch_size:
                return
            after = (batch[-1].date, batch[-1].id)


class QueryService:
    """Read operations over stores, receipts and items."""

    def __init__(self, db: Database):
        self.db = db

    # --- Receipts ---

    def get_receipt(self, receipt_id: int) -> ReceiptResponse:
        """Receipt with its items in insertion order."""
        with self.db.reader() as session:
            receipt = (
                session.query(Receipt)
                .options(selectinload(Receipt.items))
                .filter(Receipt.id == receipt_id)
                .one_or_none()
            )
            if receipt is None:
                raise NotFoundError("Receipt", receipt_id)
            return ReceiptResponse.model_validate(receipt)

    def list_receipts(self, store_id: Optional[int] = None, date_from: Any = None,
                      date_to: Any = None) -> ReceiptListing:
        """
        Lazy listing of receipts, optionally filtered by store and an
        inclusive date range. Dates may be ``datetime.date`` or ISO strings.
        """
        return ReceiptListing(
            self.db,
            store_id=store_id,
            date_from=_parse_date(date_from, "date_from"),
            date_to=_parse_date(date_to, "date_to"),
        )

    def find_receipt(self, store_id: int, purchase_date: Any) -> Optional[ReceiptSummary]:
        """First receipt recorded for the store on the given date, if any."""
        purchase_date = _parse_date(purchase_date, "date")
        with self.db.reader() as session:
            receipt = (
                session.query(Receipt)
                .filter(Receipt.store_id == store_id, Receipt.date == purchase_date)
                .order_by(Receipt.id)
                .first()
            )
            return ReceiptSummary.model_validate(receipt) if receipt else None

    def receipt_total(self, receipt_id: int) -> int:
        """Sum of quantity * price over the receipt's items; 0 for an empty receipt."""
        with self.db.reader() as session:
            self._require_receipt(session, receipt_id)
            rows = (
                session.query(Item.quantity, Item.price)
                .filter(Item.receipt_id == receipt_id)
                .all()
            )
        return sum(quantity * price for quantity, price in rows)

    def receipt_totals_by_unit(self, receipt_id: int) -> Dict[str, int]:
        """Per-unit sums of quantity * price, keyed by unit code."""
        with self.db.reader() as session:
            self._require_receipt(session, receipt_id)
            rows = (
                session.query(Item.unit, Item.quantity, Item.price)
                .filter(Item.receipt_id == receipt_id)
                .all()
            )
        totals = defaultdict(int)
        for unit, quantity, price in rows:
            totals[unit] += quantity * price
        return {unit: totals[unit] for unit in sorted(totals)}

    # --- Items ---

    def get_item(self, item_id: int) -> ItemResponse:
        with self.db.reader() as session:
            item = session.get(Item, item_id)
            if item is None:
                raise NotFoundError("Item", item_id)
            return ItemResponse.model_validate(item)

    # --- Stores ---

    def get_store(self, store_id: int) -> StoreResponse:
        with self.db.reader() as session:
            store = session.get(Store, store_id)
            if store is None:
                raise NotFoundError("Store", store_id)
            return StoreResponse.model_validate(store)

    def list_stores(self) -> List[StoreResponse]:
        with self.db.reader() as session:
            stores = session.query(Store).order_by(Store.id.asc()).all()
            return [StoreResponse.model_validate(store) for store in stores]

    def find_store(self, name: str, location: str) -> Optional[StoreResponse]:
        with self.db.reader() as session:
            store = (
                session.query(Store)
                .filter(Store.name == name.strip(), Store.location == location.strip())
                .order_by(Store.id)
                .first()
            )
            return StoreResponse.model_validate(store) if store else None

    @staticmethod
    def _require_receipt(session, receipt_id: int) -> None:
        exists = session.query(Receipt.id).filter(Receipt.id == receipt_id).first()
        if exists is None:
            raise NotFoundError("Receipt", receipt_id)
