"""
Receipt and Item database models.

Attribute names differ from column names where a relationship takes the
natural name: Receipt.store_id is stored in column "store", Item.receipt_id in
column "receipt".
"""

from sqlalchemy import Column, Integer, String, Date, ForeignKey, Index, text
from sqlalchemy.orm import relationship

from receipt_ledger.database import Base

UNIT_MAX_LENGTH = 3

# quantity * price of a single item stays within a signed 64-bit integer
MAX_ITEM_QUANTITY = 1_000_000
MAX_ITEM_PRICE = 1_000_000_000_000


class Receipt(Base):
    """Receipt model representing a single purchase event."""

    __tablename__ = "Receipt"
    __table_args__ = (
        Index("idx_receipt_store_date", "store", "date"),
        Index("idx_receipt_date", "date"),
    )

    id = Column(Integer, primary_key=True)
    store_id = Column("store", Integer, ForeignKey("Store.id"), nullable=False)
    date = Column(Date, nullable=False)

    # Relationships
    store = relationship("Store", back_populates="receipts")
    items = relationship(
        "Item",
        back_populates="receipt",
        cascade="all, delete-orphan",
        order_by="Item.id",
    )


class Item(Base):
    """Item model representing one purchased line on a receipt."""

    __tablename__ = "Item"
    __table_args__ = (
        Index("idx_item_receipt", "receipt"),
    )

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False, server_default=text("1"))
    price = Column(Integer, nullable=False)  # minor currency unit, e.g. cents
    unit = Column(String(UNIT_MAX_LENGTH), nullable=False)
    receipt_id = Column("receipt", Integer, ForeignKey("Receipt.id"), nullable=False)

    # Relationships
    receipt = relationship("Receipt", back_populates="items")
