"""
Domain: field validation for buyer candidates.

Two modes:
- create: every required field must be present; produces a BuyerDraft.
- update: only the supplied fields are checked, then merged over the current
  snapshot; the merged (effective) record must still satisfy the cross-field
  rules. Produces a BuyerPatch.

Cross-field rules:
- budget_max >= budget_min when both are present (error on budget_max).
- bhk is required when property_type is Apartment or Villa (error on bhk) and is
  silently cleared for Plot, Office and Retail.

Validation is deterministic and side-effect free. Every failing rule is collected
into a single ValidationError; nothing is ever partially applied.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Union

from domain.buyer import (
    EDITABLE_FIELDS,
    ENUM_FIELDS,
    REQUIRED_FIELDS,
    RESIDENTIAL_PROPERTY_TYPES,
    BuyerDraft,
    BuyerPatch,
    BuyerRecord,
    PropertyType,
    Status,
)
from domain.errors import FieldError, RuleKind, ValidationError

FULL_NAME_MIN_LENGTH = 2
FULL_NAME_MAX_LENGTH = 80
NOTES_MAX_LENGTH = 1000

_PHONE_PATTERN = re.compile(r"^\d{10,15}$")
_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_INTEGER_PATTERN = re.compile(r"^-?\d+$")

READ_ONLY_FIELDS: FrozenSet[str] = frozenset({"id", "owner_id", "updated_at"})

# Fields that can never be blanked out once set.
_NON_CLEARABLE_FIELDS: FrozenSet[str] = frozenset(REQUIRED_FIELDS) | {"status"}

FIELD_LABELS: Mapping[str, str] = {
    "full_name": "Full Name",
    "phone": "Phone",
    "email": "Email",
    "city": "City",
    "property_type": "Property Type",
    "bhk": "BHK",
    "purpose": "Purpose",
    "budget_min": "Budget Min",
    "budget_max": "Budget Max",
    "timeline": "Timeline",
    "source": "Source",
    "status": "Status",
    "notes": "Notes",
    "tags": "Tags",
}

BHK_REQUIRED_MESSAGE = "BHK is required for Apartment and Villa properties"
BUDGET_ORDER_MESSAGE = "Budget Max must be greater than or equal to Budget Min"


class ValidationMode(str, Enum):
    CREATE = "create"
    UPDATE = "update"


class _RuleFailure(Exception):
    def __init__(self, rule: RuleKind, message: str) -> None:
        self.rule = rule
        self.message = message
        super().__init__(message)


def _label(name: str) -> str:
    return FIELD_LABELS.get(name, name)


def is_blank(value: Any) -> bool:
    """None and whitespace-only strings count as absent (CSV blanks, empty form inputs)."""

    return value is None or (isinstance(value, str) and not value.strip())


def _require_text(name: str, value: Any) -> str:
    if not isinstance(value, str):
        raise _RuleFailure(RuleKind.TYPE, f"{_label(name)} must be text")
    return value.strip()


def _clean_full_name(value: Any) -> str:
    text = _require_text("full_name", value)
    if not FULL_NAME_MIN_LENGTH <= len(text) <= FULL_NAME_MAX_LENGTH:
        raise _RuleFailure(
            RuleKind.RANGE,
            f"Full Name must be between {FULL_NAME_MIN_LENGTH} and {FULL_NAME_MAX_LENGTH} characters",
        )
    return text


def _clean_phone(value: Any) -> str:
    if isinstance(value, int) and not isinstance(value, bool):
        value = str(value)
    text = _require_text("phone", value)
    if not _PHONE_PATTERN.match(text):
        raise _RuleFailure(RuleKind.PATTERN, "Phone must contain 10 to 15 digits")
    return text


def _clean_email(value: Any) -> str:
    text = _require_text("email", value)
    if not _EMAIL_PATTERN.match(text):
        raise _RuleFailure(RuleKind.PATTERN, "Email must be a valid email address")
    return text


def _clean_notes(value: Any) -> str:
    text = _require_text("notes", value)
    if len(text) > NOTES_MAX_LENGTH:
        raise _RuleFailure(RuleKind.RANGE, f"Notes must be at most {NOTES_MAX_LENGTH} characters")
    return text


def _enum_cleaner(name: str, enum_type: type[Enum]) -> Callable[[Any], Enum]:
    allowed = ", ".join(member.value for member in enum_type)

    def clean(value: Any) -> Enum:
        if isinstance(value, enum_type):
            return value
        if isinstance(value, str):
            # exact, case-sensitive match against the closed set
            for member in enum_type:
                if member.value == value:
                    return member
        raise _RuleFailure(RuleKind.ENUM, f"{_label(name)} must be one of: {allowed}")

    return clean


def _budget_cleaner(name: str) -> Callable[[Any], int]:
    def clean(value: Any) -> int:
        if isinstance(value, bool):
            raise _RuleFailure(RuleKind.TYPE, f"{_label(name)} must be a whole number")
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        if isinstance(value, str) and _INTEGER_PATTERN.match(value.strip()):
            value = int(value.strip())
        if not isinstance(value, int):
            raise _RuleFailure(RuleKind.TYPE, f"{_label(name)} must be a whole number")
        if value < 0:
            raise _RuleFailure(RuleKind.RANGE, f"{_label(name)} must be a non-negative integer")
        return value

    return clean


def _clean_tags(value: Any) -> FrozenSet[str]:
    if isinstance(value, str):
        items: List[Any] = value.split(",")
    elif isinstance(value, (list, tuple, set, frozenset)):
        items = list(value)
    else:
        raise _RuleFailure(RuleKind.TYPE, "Tags must be a list of strings")

    tags = set()
    for item in items:
        if not isinstance(item, str):
            raise _RuleFailure(RuleKind.TYPE, "Tags must be a list of strings")
        if item.strip():
            tags.add(item.strip())
    return frozenset(tags)


_CLEANERS: Dict[str, Callable[[Any], Any]] = {
    "full_name": _clean_full_name,
    "phone": _clean_phone,
    "email": _clean_email,
    "notes": _clean_notes,
    "tags": _clean_tags,
    "budget_min": _budget_cleaner("budget_min"),
    "budget_max": _budget_cleaner("budget_max"),
    **{name: _enum_cleaner(name, enum_type) for name, enum_type in ENUM_FIELDS.items()},
}


def _absent_value(name: str) -> Any:
    return frozenset() if name == "tags" else None


def _check_supplied_fields(candidate: Mapping[str, Any], errors: List[FieldError]) -> None:
    for name in candidate:
        if name in READ_ONLY_FIELDS:
            errors.append(FieldError(name, f"{name} is read-only", RuleKind.TYPE))
        elif name not in _CLEANERS:
            errors.append(FieldError(name, f"Unknown field: {name}", RuleKind.TYPE))


def _clean_value(name: str, raw: Any, errors: List[FieldError], values: Dict[str, Any]) -> None:
    try:
        values[name] = _CLEANERS[name](raw)
    except _RuleFailure as failure:
        errors.append(FieldError(name, failure.message, failure.rule))


def _check_cross_field(
    effective: Mapping[str, Any],
    errors: List[FieldError],
) -> Dict[str, Any]:
    """
    Apply cross-field rules to the effective record.

    Rules are skipped for fields that already failed field-level checks, so each
    field reports at most one problem. Returns the normalizations to apply.
    """

    failed = {e.field for e in errors}
    normalized: Dict[str, Any] = {}

    budget_min = effective.get("budget_min")
    budget_max = effective.get("budget_max")
    if (
        not {"budget_min", "budget_max"} & failed
        and budget_min is not None
        and budget_max is not None
        and budget_max < budget_min
    ):
        errors.append(FieldError("budget_max", BUDGET_ORDER_MESSAGE, RuleKind.CROSS_FIELD))

    property_type: Optional[PropertyType] = effective.get("property_type")
    if property_type is not None and not {"property_type", "bhk"} & failed:
        if property_type in RESIDENTIAL_PROPERTY_TYPES:
            if effective.get("bhk") is None:
                errors.append(FieldError("bhk", BHK_REQUIRED_MESSAGE, RuleKind.CROSS_FIELD))
        elif effective.get("bhk") is not None:
            normalized["bhk"] = None

    return normalized


def validate_create(candidate: Mapping[str, Any]) -> BuyerDraft:
    """
    Validate a full candidate for a new buyer.

    Raises:
        ValidationError: with every FieldError found.
    """

    errors: List[FieldError] = []
    values: Dict[str, Any] = {}
    _check_supplied_fields(candidate, errors)

    for name in EDITABLE_FIELDS:
        raw = candidate.get(name)
        if is_blank(raw):
            if name in REQUIRED_FIELDS:
                errors.append(FieldError(name, f"{_label(name)} is required", RuleKind.REQUIRED))
            continue
        _clean_value(name, raw, errors, values)

    values.update(_check_cross_field(values, errors))
    if errors:
        raise ValidationError(errors)

    values.setdefault("status", Status.NEW)
    return BuyerDraft(**values)


def validate_update(current: BuyerRecord, candidate: Mapping[str, Any]) -> BuyerPatch:
    """
    Validate a partial update against the current snapshot.

    Only supplied fields are checked individually; the merged record is checked
    against the cross-field rules. Blank optional fields clear the stored value.

    Raises:
        ValidationError: with every FieldError found.
    """

    errors: List[FieldError] = []
    changes: Dict[str, Any] = {}
    _check_supplied_fields(candidate, errors)

    for name, raw in candidate.items():
        if name not in _CLEANERS:
            continue
        if is_blank(raw):
            if name in _NON_CLEARABLE_FIELDS:
                errors.append(FieldError(name, f"{_label(name)} is required", RuleKind.REQUIRED))
            else:
                changes[name] = _absent_value(name)
            continue
        _clean_value(name, raw, errors, changes)

    effective = {**current.editable_values(), **changes}
    adjustments = _check_cross_field(effective, errors)
    if errors:
        raise ValidationError(errors)

    normalized: Dict[str, Any] = {}
    for name, value in adjustments.items():
        if name in changes:
            changes[name] = value
        else:
            normalized[name] = value
    return BuyerPatch(changes=changes, normalized=normalized)


def validate(
    candidate: Mapping[str, Any],
    mode: Union[ValidationMode, str] = ValidationMode.CREATE,
    current: Optional[BuyerRecord] = None,
) -> Union[BuyerDraft, BuyerPatch]:
    """Dispatch to create or update validation."""

    mode = ValidationMode(mode)
    if mode is ValidationMode.CREATE:
        return validate_create(candidate)
    if current is None:
        raise ValueError("update validation requires the current record snapshot")
    return validate_update(current, candidate)


__all__ = [
    "BHK_REQUIRED_MESSAGE",
    "BUDGET_ORDER_MESSAGE",
    "FIELD_LABELS",
    "READ_ONLY_FIELDS",
    "ValidationMode",
    "is_blank",
    "validate",
    "validate_create",
    "validate_update",
]
