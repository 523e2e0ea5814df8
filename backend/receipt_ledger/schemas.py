import datetime as dt
import re
from typing import Annotated, List, Optional

from pydantic import BaseModel, BeforeValidator, Field, Strict, field_validator

from receipt_ledger.models.receipt import MAX_ITEM_PRICE, MAX_ITEM_QUANTITY, UNIT_MAX_LENGTH
from receipt_ledger.services.normalization import normalize_unit

ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _strip(value):
    return value.strip() if isinstance(value, str) else value


def parse_calendar_date(value):
    """Accept ``YYYY-MM-DD`` strings; datetimes are rejected, other types are left to the strict date check."""
    if isinstance(value, dt.datetime):
        raise ValueError("expected a calendar date without a time")
    if isinstance(value, str):
        text = value.strip()
        if not ISO_DATE_PATTERN.match(text):
            raise ValueError(f"expected an ISO date (YYYY-MM-DD), got {value!r}")
        try:
            return dt.date.fromisoformat(text)
        except ValueError as e:
            raise ValueError(f"invalid calendar date {value!r}: {e}") from None
    return value


# datetime.date instance or ISO string, nothing else (no timestamps)
CalendarDate = Annotated[dt.date, Strict(), BeforeValidator(parse_calendar_date)]


# --- Store ---
class StoreBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    location: str = Field(..., min_length=1, max_length=100)

    @field_validator("name", "location", mode="before")
    @classmethod
    def strip_text(cls, value):
        return _strip(value)


class StoreCreate(StoreBase):
    class Config:
        extra = "forbid"


class StoreResponse(BaseModel):
    id: int
    name: str
    location: str

    class Config:
        from_attributes = True


# --- Item ---
class ItemBase(BaseModel):
    name: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1, le=MAX_ITEM_QUANTITY, strict=True)
    # minor currency unit, e.g. cents
    price: int = Field(..., ge=0, le=MAX_ITEM_PRICE, strict=True)
    unit: str = Field(..., min_length=1, max_length=UNIT_MAX_LENGTH)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return _strip(value)

    @field_validator("unit", mode="before")
    @classmethod
    def normalize_unit_code(cls, value):
        if isinstance(value, str):
            return normalize_unit(value)
        return value


class ItemCreate(ItemBase):
    class Config:
        extra = "forbid"


class ItemUpdate(BaseModel):
    """Partial item change; only the fields that are set are applied."""

    name: Optional[str] = None
    quantity: Optional[int] = Field(None, strict=True)
    price: Optional[int] = Field(None, strict=True)
    unit: Optional[str] = None

    class Config:
        extra = "forbid"


class ItemResponse(BaseModel):
    """Item as stored; no input rules are re-applied on read."""

    id: int
    receipt_id: int
    name: str
    quantity: int
    price: int
    unit: str

    class Config:
        from_attributes = True


# --- Receipt ---
class ReceiptCreate(BaseModel):
    store_id: int = Field(..., strict=True)
    date: CalendarDate
    items: List[ItemCreate] = []

    class Config:
        extra = "forbid"


class ReceiptSummary(BaseModel):
    id: int
    store_id: int
    date: dt.date

    class Config:
        from_attributes = True


class ReceiptResponse(ReceiptSummary):
    items: List[ItemResponse] = []
