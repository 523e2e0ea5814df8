"""
Domain validation for ledger input.

Shape and range rules live in the pydantic schemas; this module runs them,
applies the settings-dependent rules (allowed units, capitalized names) and
turns pydantic failures into ValidationError naming the offending field,
e.g. ``items[2].price``.
"""

import logging
from typing import Any, Mapping, Optional, Sequence, Tuple, Union

from pydantic import ValidationError as PydanticValidationError

from receipt_ledger.config import Settings
from receipt_ledger.exceptions import ValidationError
from receipt_ledger.schemas import ItemCreate, ItemUpdate, ReceiptCreate, StoreCreate
from receipt_ledger.services.normalization import normalize_item_name

logger = logging.getLogger(__name__)

ItemInput = Union[ItemCreate, Mapping[str, Any]]


def field_path(loc: Sequence[Union[str, int]], prefix: str = "") -> str:
    """Render a pydantic error location as ``items[1].price``."""
    path = prefix
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path = f"{path}.{part}" if path else str(part)
    return path or "__root__"


def translate_error(error: PydanticValidationError, prefix: str = "") -> ValidationError:
    first = error.errors()[0]
    field = field_path(first["loc"], prefix)
    logger.warning(f"Rejected input: {field}: {first['msg']}")
    return ValidationError(field, first["msg"])


def _check_item(item: ItemCreate, prefix: str, config: Settings) -> ItemCreate:
    if config.ALLOWED_UNITS and item.unit not in config.ALLOWED_UNITS:
        logger.warning(f"Rejected input: {prefix}.unit: unknown unit {item.unit!r}")
        raise ValidationError(
            f"{prefix}.unit",
            f"unknown unit {item.unit!r}, expected one of {', '.join(config.ALLOWED_UNITS)}",
        )
    name = normalize_item_name(item.name, config.CAPITALIZE_ITEM_NAMES)
    if name != item.name:
        item = item.model_copy(update={"name": name})
    return item


def validate_item(data: ItemInput, config: Settings, prefix: str = "item") -> ItemCreate:
    try:
        item = ItemCreate.model_validate(data)
    except PydanticValidationError as e:
        raise translate_error(e, prefix) from None
    return _check_item(item, prefix, config)


def validate_receipt(store_id: Any, purchase_date: Any, items: Optional[Sequence[ItemInput]],
                     config: Settings) -> ReceiptCreate:
    """Validate a whole receipt; nothing has been written when this raises."""
    try:
        receipt = ReceiptCreate.model_validate(
            {"store_id": store_id, "date": purchase_date, "items": list(items or [])}
        )
    except PydanticValidationError as e:
        raise translate_error(e) from None

    checked = [
        _check_item(item, f"items[{index}]", config)
        for index, item in enumerate(receipt.items)
    ]
    return receipt.model_copy(update={"items": checked})


def validate_store(name: Any, location: Any) -> StoreCreate:
    try:
        return StoreCreate.model_validate({"name": name, "location": location})
    except PydanticValidationError as e:
        raise translate_error(e, "store") from None


def merge_item_patch(current: Mapping[str, Any], patch: Union[ItemUpdate, Mapping[str, Any]],
                     config: Settings) -> Tuple[ItemCreate, set]:
    """
    Apply a partial change to the current item values and re-validate the result.

    Returns:
        The validated merged item and the names of the fields the patch set.
    """
    try:
        update = ItemUpdate.model_validate(patch)
    except PydanticValidationError as e:
        raise translate_error(e, "patch") from None

    changes = update.model_dump(exclude_unset=True)
    merged = {**current, **changes}
    return validate_item(merged, config, prefix="patch"), set(changes)
