"""
Service for data normalization (item names, units).
"""

from typing import Optional

# Standard Unit Map
UNIT_MAP = {
    "ea": ["ea", "ea.", "each", "pc", "pc.", "pcs", "piece", "stk", "szt", "szt."],
    "kg": ["kg", "kg.", "kilo", "kilogram"],
    "g": ["g", "g.", "gr", "gram"],
    "l": ["l", "l.", "ltr", "litre", "liter"],
    "ml": ["ml", "ml.", "millilitre", "milliliter"],
    "m": ["m", "m.", "metre", "meter"],
    "pk": ["pk", "pk.", "pck", "pack", "pkg"],
}

# Reverse map for O(1) lookup
NORMALIZED_UNITS = {}
for standard, variants in UNIT_MAP.items():
    for v in variants:
        NORMALIZED_UNITS[v.lower()] = standard


def normalize_unit(raw_unit: Optional[str]) -> Optional[str]:
    """
    Normalize unit string to its standard code (e.g., 'pcs', 'Pc.' -> 'ea').

    Unknown codes are returned stripped but otherwise untouched.
    """
    if raw_unit is None:
        return None

    clean = raw_unit.strip()
    return NORMALIZED_UNITS.get(clean.lower().replace(" ", ""), clean)


def normalize_item_name(raw_name: str, capitalize: bool = False) -> str:
    """Collapse whitespace; upper-case when the ledger is set to capitalize item names."""
    name = " ".join(raw_name.split())
    return name.upper() if capitalize else name
