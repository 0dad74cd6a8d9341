"""
Domain: field-level diff between two versions of a buyer.

Only the fields the caller submitted are compared, so normalizations applied to
other fields are never reported as changes. Equal values are omitted; an empty
result means there is nothing to record.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from domain.buyer import to_json_value
from domain.history import FieldChange


def _normalize(value: Any) -> Any:
    # tags compare as sets regardless of the container they arrive in
    if isinstance(value, (list, tuple, set)):
        return frozenset(value)
    return value


def _value_of(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def compute_diff(old: Any, new: Any, fields_considered: Iterable[str]) -> dict[str, FieldChange]:
    """
    Compute {field: FieldChange(old, new)} for the considered fields that differ.

    `old` and `new` may be BuyerRecord instances or plain mappings. Field order in
    the result follows `fields_considered` (sorted when it is a set).
    """

    if isinstance(fields_considered, (set, frozenset)):
        fields_considered = sorted(fields_considered)

    diff: dict[str, FieldChange] = {}
    for name in fields_considered:
        old_value = _value_of(old, name)
        new_value = _value_of(new, name)
        if _normalize(old_value) == _normalize(new_value):
            continue
        diff[name] = FieldChange(old=old_value, new=new_value)
    return diff


def diff_to_json(diff: Mapping[str, FieldChange]) -> dict[str, dict[str, Any]]:
    """Render a diff as {"field": {"old": ..., "new": ...}} with JSON-safe values."""

    return {
        name: {"old": to_json_value(change.old), "new": to_json_value(change.new)}
        for name, change in diff.items()
    }


def diff_from_json(payload: Mapping[str, Mapping[str, Any]]) -> dict[str, FieldChange]:
    return {
        name: FieldChange(old=change.get("old"), new=change.get("new"))
        for name, change in (payload or {}).items()
    }


__all__ = ["compute_diff", "diff_from_json", "diff_to_json"]
