"""
CSV import row handling: read rows with pandas and turn each row into an
ImportBatchLine. Numeric fields default to 0 and are clamped to >= 0 when
they fail to parse; rows without ``name`` or ``sku`` are reported, not raised.
"""

import math
from typing import IO, Any

import pandas as pd

from config.config import ReconciliationConfig
from models.imports import ImportBatchLine

INT_COLUMNS = {
    "pickingBinQuantity": "picking_bin_quantity",
    "overstockQuantity": "overstock_quantity",
    "reorderLevel": "reorder_level",
    "pickingReorderLevel": "picking_reorder_level",
    "committedStock": "committed_stock",
    "incomingStock": "incoming_stock",
    "autoReorderQuantity": "auto_reorder_quantity",
}
FLOAT_COLUMNS = {
    "unitCost": "unit_cost",
    "retailPrice": "retail_price",
}


def read_import_rows(source: str | IO[str]) -> list[dict[str, str]]:
    """Read a CSV file (path or buffer) into row dicts with every cell as a string. Empty input gives []."""
    try:
        frame = pd.read_csv(source, dtype=str, keep_default_na=False, skip_blank_lines=True)
    except pd.errors.EmptyDataError:
        return []
    frame.columns = [str(c).strip() for c in frame.columns]
    return frame.to_dict(orient="records")


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    return str(value).strip()


def parse_non_negative_int(value: Any) -> int:
    text = _text(value)
    try:
        number = int(float(text)) if text else 0
    except (ValueError, OverflowError):
        return 0
    return max(number, 0)


def parse_non_negative_float(value: Any) -> float:
    text = _text(value)
    try:
        number = float(text) if text else 0.0
    except ValueError:
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return max(number, 0.0)


def parse_row(row: dict[str, Any], row_number: int, config: ReconciliationConfig) -> ImportBatchLine:
    """Convert one row to a batch line. Raises ValueError if name or sku is missing."""
    name = _text(row.get("name"))
    sku = _text(row.get("sku"))
    if not name or not sku:
        raise ValueError("Missing required fields (name, sku)")

    location = _text(row.get("location")) or config.unassigned_location
    fields: dict[str, Any] = {
        "row_number": row_number,
        "name": name,
        "sku": sku,
        "description": _text(row.get("description")),
        "category": _text(row.get("category")) or config.default_category,
        "location": location,
        "picking_bin_location": _text(row.get("pickingBinLocation")) or location,
        "vendor_id": _text(row.get("vendorId")) or None,
        "barcode_url": _text(row.get("barcodeUrl")) or sku,
        "image_url": _text(row.get("imageUrl")) or None,
        "auto_reorder_enabled": _text(row.get("autoReorderEnabled")).lower() == "true",
    }
    for column, field_name in INT_COLUMNS.items():
        fields[field_name] = parse_non_negative_int(row.get(column))
    for column, field_name in FLOAT_COLUMNS.items():
        fields[field_name] = parse_non_negative_float(row.get(column))
    return ImportBatchLine(**fields)


def parse_rows(
    rows: list[dict[str, Any]], config: ReconciliationConfig | None = None
) -> tuple[list[ImportBatchLine], list[str]]:
    """Parse all rows, returning the valid lines and one error message per rejected row."""
    config = config or ReconciliationConfig()
    lines: list[ImportBatchLine] = []
    errors: list[str] = []
    for row_number, row in enumerate(rows, start=1):
        try:
            lines.append(parse_row(row, row_number, config))
        except ValueError as e:
            errors.append(f"Row {row_number}: {e}. Skipping item.")
    return lines, errors
