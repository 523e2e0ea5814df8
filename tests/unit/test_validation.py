"""
Tests for input normalization and validation rules
"""
from datetime import date, datetime

import pytest

from receipt_ledger.config import Settings
from receipt_ledger.exceptions import ValidationError
from receipt_ledger.schemas import ItemCreate
from receipt_ledger.services.normalization import normalize_item_name, normalize_unit
from receipt_ledger.services.validation import (
    field_path,
    merge_item_patch,
    validate_item,
    validate_receipt,
)


@pytest.fixture
def config() -> Settings:
    return Settings(_env_file=None)


@pytest.mark.unit
class TestNormalization:

    @pytest.mark.parametrize("raw,expected", [
        ("pcs", "ea"),
        ("Pc.", "ea"),
        (" KG ", "kg"),
        ("litre", "l"),
        ("ml", "ml"),
        ("NOK", "NOK"),
    ])
    def test_normalize_unit(self, raw, expected):
        assert normalize_unit(raw) == expected

    def test_normalize_unit_none(self):
        assert normalize_unit(None) is None

    def test_normalize_item_name(self):
        assert normalize_item_name("  Whole   milk ") == "Whole milk"
        assert normalize_item_name("Whole milk", capitalize=True) == "WHOLE MILK"


@pytest.mark.unit
class TestFieldPath:

    def test_nested_location(self):
        assert field_path(("items", 2, "price")) == "items[2].price"

    def test_prefix(self):
        assert field_path(("unit",), "patch") == "patch.unit"

    def test_empty_location(self):
        assert field_path(()) == "__root__"


@pytest.mark.unit
class TestValidateItem:

    def test_defaults(self, config):
        item = validate_item({"name": "Milk", "price": 150, "unit": "l"}, config)

        assert item == ItemCreate(name="Milk", quantity=1, price=150, unit="l")

    def test_free_price_is_valid(self, config):
        assert validate_item({"name": "Bag", "price": 0, "unit": "ea"}, config).price == 0

    @pytest.mark.parametrize("data,field", [
        ({"name": "Milk", "price": 150, "unit": "l", "colour": "white"}, "item.colour"),
        ({"name": "Milk", "quantity": "2", "price": 150, "unit": "l"}, "item.quantity"),
        ({"name": "Milk", "quantity": 2.5, "price": 150, "unit": "l"}, "item.quantity"),
        ({"name": "Milk", "price": 150, "unit": "gal"}, "item.unit"),
        ({"price": 150, "unit": "l"}, "item.name"),
    ])
    def test_rejected(self, config, data, field):
        with pytest.raises(ValidationError) as exc_info:
            validate_item(data, config)

        assert exc_info.value.field == field

    def test_any_short_unit_when_unrestricted(self):
        config = Settings(_env_file=None, ALLOWED_UNITS=[])

        assert validate_item({"name": "Milk", "price": 150, "unit": "NOK"}, config).unit == "NOK"

    def test_capitalized_names(self):
        config = Settings(_env_file=None, CAPITALIZE_ITEM_NAMES=True)

        assert validate_item({"name": "milk", "price": 150, "unit": "l"}, config).name == "MILK"


@pytest.mark.unit
class TestValidateReceipt:

    def test_valid(self, config):
        receipt = validate_receipt(1, "2024-01-05", [{"name": "Milk", "price": 150, "unit": "l"}], config)

        assert receipt.store_id == 1
        assert receipt.date == date(2024, 1, 5)
        assert receipt.items[0].quantity == 1

    def test_items_optional(self, config):
        assert validate_receipt(1, date(2024, 1, 5), None, config).items == []

    @pytest.mark.parametrize("bad_date", [0, 1704412800, "2024/01/05", datetime(2024, 1, 5, 9, 0)])
    def test_date_must_be_calendar_date(self, config, bad_date):
        with pytest.raises(ValidationError) as exc_info:
            validate_receipt(1, bad_date, [], config)

        assert exc_info.value.field == "date"

    def test_store_must_be_integer(self, config):
        with pytest.raises(ValidationError) as exc_info:
            validate_receipt("1", date(2024, 1, 5), [], config)

        assert exc_info.value.field == "store_id"

    def test_unit_error_names_item(self, config):
        items = [
            {"name": "Milk", "price": 150, "unit": "l"},
            {"name": "Gas", "price": 150, "unit": "gal"},
        ]

        with pytest.raises(ValidationError) as exc_info:
            validate_receipt(1, date(2024, 1, 5), items, config)

        assert exc_info.value.field == "items[1].unit"


@pytest.mark.unit
class TestMergeItemPatch:

    CURRENT = {"name": "Milk", "quantity": 2, "price": 150, "unit": "l"}

    def test_merge(self, config):
        merged, changed = merge_item_patch(self.CURRENT, {"price": 175}, config)

        assert merged.price == 175
        assert merged.quantity == 2
        assert changed == {"price"}

    def test_empty_patch(self, config):
        merged, changed = merge_item_patch(self.CURRENT, {}, config)

        assert merged == ItemCreate(**self.CURRENT)
        assert changed == set()
