"""
Tests for `domain/diff.py`.

Covers contract rules:
- Only the considered fields are compared.
- Equal values are omitted; an empty diff means nothing changed.
- Tags compare as sets regardless of container or order.
- JSON rendering uses plain values (enum values, sorted tag lists).
"""

from __future__ import annotations

from domain.buyer import Bhk, PropertyType, Status
from domain.diff import compute_diff, diff_from_json, diff_to_json
from domain.history import FieldChange


def test_diff_reports_changed_fields_only() -> None:
    old = {"status": Status.NEW, "notes": "call later", "city": "Mohali"}
    new = {"status": Status.CONTACTED, "notes": "call later", "city": "Zirakpur"}

    diff = compute_diff(old, new, ["status", "notes"])

    assert diff == {"status": FieldChange(old=Status.NEW, new=Status.CONTACTED)}


def test_diff_identical_values_is_empty() -> None:
    old = {"status": Status.NEW, "budget_min": 100}

    assert compute_diff(old, dict(old), ["status", "budget_min"]) == {}


def test_diff_field_missing_on_one_side_is_none() -> None:
    diff = compute_diff({"email": "a@b.co"}, {}, ["email"])

    assert diff == {"email": FieldChange(old="a@b.co", new=None)}


def test_diff_tags_compare_as_sets() -> None:
    old = {"tags": frozenset({"a", "b"})}

    assert compute_diff(old, {"tags": ["b", "a", "a"]}, ["tags"]) == {}
    assert compute_diff(old, {"tags": ("a",)}, ["tags"]) == {
        "tags": FieldChange(old=frozenset({"a", "b"}), new=("a",))
    }


def test_diff_set_of_fields_is_ordered() -> None:
    old = {"status": Status.NEW, "bhk": Bhk.TWO}
    new = {"status": Status.VISITED, "bhk": Bhk.THREE}

    assert list(compute_diff(old, new, {"status", "bhk"})) == ["bhk", "status"]


def test_diff_json_round_trip_keeps_plain_values() -> None:
    diff = {
        "property_type": FieldChange(old=PropertyType.APARTMENT, new=PropertyType.PLOT),
        "tags": FieldChange(old=frozenset({"vip", "hot"}), new=frozenset()),
    }

    payload = diff_to_json(diff)

    assert payload == {
        "property_type": {"old": "Apartment", "new": "Plot"},
        "tags": {"old": ["hot", "vip"], "new": []},
    }
    assert diff_from_json(payload)["property_type"] == FieldChange(old="Apartment", new="Plot")
    assert diff_from_json({}) == {}
