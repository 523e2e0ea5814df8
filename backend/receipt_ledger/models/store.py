"""
Store database model.
"""

from sqlalchemy import Column, Integer, String, Index
from sqlalchemy.orm import relationship

from receipt_ledger.database import Base


class Store(Base):
    """Store model representing the merchant location a receipt was issued from."""

    __tablename__ = "Store"
    __table_args__ = (
        Index("idx_store_name_location", "name", "location"),
    )

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    location = Column(String, nullable=False)

    # Relationships (a store does not own its receipts)
    receipts = relationship("Receipt", back_populates="store")
