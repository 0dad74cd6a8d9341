"""
CSV boundary for buyer import and export.

Maps CSV text to flat candidate rows (strings only; typing happens in the
validator) and renders buyers back to CSV.

Security:
- CSV Injection Prevention: every exported cell is sanitized to prevent formula execution
- Security Logging: logs when dangerous characters are stripped
"""

from __future__ import annotations

import csv
import logging
from io import StringIO
from typing import Any, Dict, Iterable, List, Mapping

from domain.buyer import BuyerRecord

logger = logging.getLogger(__name__)

# CSV column names in order. Headers may also use the snake_case field names.
CSV_COLUMNS: List[str] = [
    "fullName",
    "email",
    "phone",
    "city",
    "propertyType",
    "bhk",
    "purpose",
    "budgetMin",
    "budgetMax",
    "timeline",
    "source",
    "notes",
    "tags",
    "status",
]

_COLUMN_TO_FIELD: Dict[str, str] = {
    "fullName": "full_name",
    "email": "email",
    "phone": "phone",
    "city": "city",
    "propertyType": "property_type",
    "bhk": "bhk",
    "purpose": "purpose",
    "budgetMin": "budget_min",
    "budgetMax": "budget_max",
    "timeline": "timeline",
    "source": "source",
    "notes": "notes",
    "tags": "tags",
    "status": "status",
}
_HEADER_ALIASES: Dict[str, str] = {
    **_COLUMN_TO_FIELD,
    **{field_name: field_name for field_name in _COLUMN_TO_FIELD.values()},
}

REQUIRED_COLUMNS = frozenset({"full_name", "phone", "city", "property_type", "purpose", "timeline", "source"})

_DANGEROUS_LEADING_CHARS = {"=", "+", "-", "@", "\t", "\r"}


def sanitize_csv_field(value: object, field_name: str = "unknown") -> str:
    """
    Sanitize field to prevent CSV injection attacks with security logging.

    Strips leading characters that can trigger formula execution in Excel/Sheets:
    =, +, -, @, tab, carriage return

    If dangerous characters are found and stripped, a warning is logged for
    security monitoring.

    Example:
        sanitize_csv_field("=1+1", "full_name")
        # Returns "1+1" and logs warning about stripped "=" character
    """
    if value is None or value == "":
        return ""

    text = str(value).strip()
    original_text = text

    # Strip dangerous leading characters
    stripped_chars = []
    while text and text[0] in _DANGEROUS_LEADING_CHARS:
        stripped_chars.append(text[0])
        text = text[1:]

    if stripped_chars:
        logger.warning(
            f"CSV injection character(s) stripped from field '{field_name}'",
            extra={
                "field_name": field_name,
                "stripped_characters": "".join(stripped_chars),
                "original_value": original_text[:100],
                "sanitized_value": text[:100],
                "modification_type": "csv_injection_prevention",
            },
        )

    return text


def parse_buyers_csv(text: str) -> List[Dict[str, str]]:
    """
    Parse CSV text into candidate rows keyed by buyer field name.

    - Header cells are trimmed and may be camelCase (fullName) or snake_case (full_name)
    - Blank lines are skipped
    - Cells are trimmed; blanks stay as "" and are treated as absent by the validator

    Raises:
        ValueError: if the CSV has no header, unknown, duplicated or missing required columns,
            or a row with more cells than the header.
    """
    # Tolerate a UTF-8 BOM from spreadsheet exports
    reader = csv.DictReader(StringIO(text.lstrip("\ufeff")))

    if not reader.fieldnames:
        raise ValueError("CSV file is empty or malformed")

    headers = [h.strip() for h in reader.fieldnames]
    unknown = [h for h in headers if h not in _HEADER_ALIASES]
    if unknown:
        raise ValueError(f"CSV has unknown columns: {', '.join(unknown)}")

    field_names = [_HEADER_ALIASES[h] for h in headers]
    duplicated = sorted({name for name in field_names if field_names.count(name) > 1})
    if duplicated:
        raise ValueError(f"CSV has duplicate columns for: {', '.join(duplicated)}")

    missing = REQUIRED_COLUMNS - set(field_names)
    if missing:
        raise ValueError(f"CSV missing required columns: {', '.join(sorted(missing))}")

    rows: List[Dict[str, str]] = []
    for row_num, raw in enumerate(reader, start=2):  # Row 1 is header
        if None in raw:
            raise ValueError(f"Row {row_num} has more cells than the header")
        values = [(raw.get(h) or "").strip() for h in reader.fieldnames]
        if not any(values):
            continue
        rows.append(dict(zip(field_names, values)))

    return rows


def to_field_names(row: Mapping[str, Any]) -> Dict[str, Any]:
    """Rename camelCase keys to buyer field names; other keys pass through for the validator."""

    return {_HEADER_ALIASES.get(key, key): value for key, value in row.items()}


def buyer_to_csv_row(buyer: BuyerRecord) -> Dict[str, str]:
    """Convert a BuyerRecord to a sanitized CSV row dictionary."""

    values: Mapping[str, object] = {
        "fullName": buyer.full_name,
        "email": buyer.email,
        "phone": buyer.phone,
        "city": buyer.city.value,
        "propertyType": buyer.property_type.value,
        "bhk": buyer.bhk.value if buyer.bhk is not None else None,
        "purpose": buyer.purpose.value,
        "budgetMin": buyer.budget_min,
        "budgetMax": buyer.budget_max,
        "timeline": buyer.timeline.value,
        "source": buyer.source.value,
        "notes": buyer.notes,
        "tags": ",".join(sorted(buyer.tags)),
        "status": buyer.status.value,
    }
    return {column: sanitize_csv_field(values[column], _COLUMN_TO_FIELD[column]) for column in CSV_COLUMNS}


def export_buyers_csv(buyers: Iterable[BuyerRecord]) -> str:
    """Render buyers as CSV text (header row always present)."""

    output = StringIO()
    writer = csv.DictWriter(output, fieldnames=CSV_COLUMNS)
    writer.writeheader()
    for buyer in buyers:
        writer.writerow(buyer_to_csv_row(buyer))
    return output.getvalue()


__all__ = [
    "CSV_COLUMNS",
    "REQUIRED_COLUMNS",
    "buyer_to_csv_row",
    "export_buyers_csv",
    "parse_buyers_csv",
    "sanitize_csv_field",
    "to_field_names",
]
