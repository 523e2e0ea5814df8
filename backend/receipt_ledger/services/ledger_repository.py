"""
Write side of the receipt ledger.

Every public method runs in exactly one write transaction (Database.writer):
either all of its rows are written or none are. Referenced rows are checked
inside the same transaction before anything is inserted, on top of the
database's own foreign key enforcement.

Writes touching a receipt's items are serialized per receipt. On SQLite every
write transaction starts with BEGIN IMMEDIATE, which already admits a single
writer at a time; on other databases the receipt row is locked with
SELECT ... FOR UPDATE before its items are read or changed. Either way a
concurrent delete_receipt and add_item on the same receipt cannot both
succeed.

Deleting a receipt cascades to its items.
"""

import logging
from typing import Any, Mapping, Optional, Sequence, Union

from sqlalchemy.orm import Session

from receipt_ledger.config import Settings
from receipt_ledger.database import Database
from receipt_ledger.exceptions import DuplicateError, UnknownReferenceError
from receipt_ledger.models import Item, Receipt, Store
from receipt_ledger.schemas import ItemResponse, ItemUpdate
from receipt_ledger.services.validation import (
    ItemInput,
    merge_item_patch,
    validate_item,
    validate_receipt,
    validate_store,
)

logger = logging.getLogger(__name__)

EDITABLE_ITEM_FIELDS = ("name", "quantity", "price", "unit")


class LedgerRepository:
    """Atomic create/update/delete operations over stores, receipts and items."""

    def __init__(self, db: Database, config: Optional[Settings] = None):
        self.db = db
        self.config = config or db.config

    # --- Stores ---

    def create_store(self, name: str, location: str, force: bool = False) -> int:
        """
        Add a store and return its id.

        A store with the same name and location is rejected with DuplicateError
        unless ``force`` is set.
        """
        store_in = validate_store(name, location)

        with self.db.writer() as session:
            if not force:
                existing = (
                    session.query(Store.id)
                    .filter(Store.name == store_in.name, Store.location == store_in.location)
                    .first()
                )
                if existing is not None:
                    raise DuplicateError(
                        "Store", existing.id, f"{store_in.name} ({store_in.location})"
                    )

            store = Store(name=store_in.name, location=store_in.location)
            session.add(store)
            session.flush()
            store_id = store.id

        logger.info(f"Created store {store_id}: {store_in.name} ({store_in.location})")
        return store_id

    # --- Receipts ---

    def create_receipt(
        self,
        store: int,
        date: Any,
        items: Optional[Sequence[ItemInput]] = None,
        force: bool = True,
    ) -> int:
        """
        Insert a receipt and its items in one transaction and return the receipt id.

        Args:
            store: Id of an existing store.
            date: Purchase date (``datetime.date`` or ISO ``YYYY-MM-DD`` string).
            items: Item mappings or ItemCreate instances; ``quantity`` defaults to 1.
            force: When False, a receipt already recorded for the same store
                and date is rejected with DuplicateError.

        Raises:
            ValidationError: the date or any item is invalid; nothing is written.
            UnknownReferenceError: the store does not exist.
            DuplicateError: see ``force``.
        """
        receipt_in = validate_receipt(store, date, items, self.config)

        with self.db.writer() as session:
            if session.get(Store, receipt_in.store_id) is None:
                raise UnknownReferenceError("Store", receipt_in.store_id)

            if not force:
                existing = (
                    session.query(Receipt.id)
                    .filter(Receipt.store_id == receipt_in.store_id, Receipt.date == receipt_in.date)
                    .order_by(Receipt.id)
                    .first()
                )
                if existing is not None:
                    raise DuplicateError(
                        "Receipt", existing.id,
                        f"store {receipt_in.store_id} on {receipt_in.date.isoformat()}",
                    )

            receipt = Receipt(store_id=receipt_in.store_id, date=receipt_in.date)
            session.add(receipt)
            session.flush()
            receipt_id = receipt.id

            # One flush per item keeps ids in insertion order
            for item_in in receipt_in.items:
                session.add(Item(receipt_id=receipt_id, **item_in.model_dump()))
                session.flush()

        logger.info(
            f"Created receipt {receipt_id} for store {receipt_in.store_id} "
            f"on {receipt_in.date.isoformat()} with {len(receipt_in.items)} items"
        )
        return receipt_id

    def delete_receipt(self, receipt_id: int) -> int:
        """
        Delete a receipt together with all of its items.

        Returns:
            The number of items removed with the receipt.
        """
        with self.db.writer() as session:
            self._lock_receipt(session, receipt_id)
            removed = (
                session.query(Item)
                .filter(Item.receipt_id == receipt_id)
                .delete(synchronize_session=False)
            )
            session.query(Receipt).filter(Receipt.id == receipt_id).delete(
                synchronize_session=False
            )

        logger.info(f"Deleted receipt {receipt_id} and {removed} items")
        return removed

    # --- Items ---

    def add_item(self, receipt_id: int, item: ItemInput) -> int:
        """Append an item to an existing receipt and return the item id."""
        item_in = validate_item(item, self.config)

        with self.db.writer() as session:
            self._lock_receipt(session, receipt_id)
            row = Item(receipt_id=receipt_id, **item_in.model_dump())
            session.add(row)
            session.flush()
            item_id = row.id

        logger.info(f"Added item {item_id} ({item_in.name}) to receipt {receipt_id}")
        return item_id

    def delete_item(self, item_id: int) -> None:
        with self.db.writer() as session:
            row = self._load_item(session, item_id)
            session.delete(row)

        logger.info(f"Deleted item {item_id}")

    def update_item(self, item_id: int, patch: Union[ItemUpdate, Mapping[str, Any]]) -> ItemResponse:
        """
        Change some fields of an item.

        The merged item is validated with the same rules as a new one; on
        failure ValidationError is raised and the stored row is left as it was.
        """
        with self.db.writer() as session:
            row = self._load_item(session, item_id)
            current = {field: getattr(row, field) for field in EDITABLE_ITEM_FIELDS}
            merged, changed = merge_item_patch(current, patch, self.config)
            for field in changed:
                setattr(row, field, getattr(merged, field))
            session.flush()
            updated = ItemResponse.model_validate(row)

        if changed:
            logger.info(f"Updated item {item_id}: {', '.join(sorted(changed))}")
        return updated

    # --- Helpers ---

    def _lock_receipt(self, session: Session, receipt_id: int) -> Receipt:
        query = session.query(Receipt).filter(Receipt.id == receipt_id)
        if self.db.locks_rows:
            query = query.with_for_update()
        receipt = query.one_or_none()
        if receipt is None:
            raise UnknownReferenceError("Receipt", receipt_id)
        return receipt

    def _load_item(self, session: Session, item_id: int) -> Item:
        receipt_id = session.query(Item.receipt_id).filter(Item.id == item_id).scalar()
        if receipt_id is None:
            raise UnknownReferenceError("Item", item_id)
        self._lock_receipt(session, receipt_id)
        row = session.get(Item, item_id)
        if row is None:
            # deleted between the lookup and the lock
            raise UnknownReferenceError("Item", item_id)
        return row
