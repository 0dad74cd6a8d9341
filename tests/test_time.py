"""
Tests for `domain/time.py`.

Covers:
- Stored timestamps parse to UTC whatever their fractional-second width
- Trailing 'Z', naive values and non-UTC offsets
- MonotonicClock never repeats or goes backwards
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from domain.time import MonotonicClock, parse_utc_datetime, to_iso_utc


@pytest.mark.parametrize(
    "text, microsecond",
    [
        ("2025-01-01T12:00:00.1+00:00", 100000),
        ("2025-01-01T12:00:00.12+00:00", 120000),
        ("2025-01-01T12:00:00.12345Z", 123450),
        ("2025-01-01T12:00:00.123456+00:00", 123456),
        ("2025-01-01T12:00:00+00:00", 0),
    ],
)
def test_parse_short_fractional_seconds(text: str, microsecond: int) -> None:
    parsed = parse_utc_datetime(text)

    assert parsed == datetime(2025, 1, 1, 12, 0, 0, microsecond, tzinfo=timezone.utc)


def test_parse_normalizes_to_utc() -> None:
    assert parse_utc_datetime("2025-01-01T17:30:00.5+05:30") == datetime(2025, 1, 1, 12, 0, 0, 500000, tzinfo=timezone.utc)
    assert parse_utc_datetime("2025-01-01T12:00:00") == datetime(2025, 1, 1, 12, tzinfo=timezone.utc)


def test_parse_round_trips_serialized_token() -> None:
    token = datetime(2025, 1, 1, 12, 0, 0, 120000, tzinfo=timezone.utc)

    assert parse_utc_datetime(to_iso_utc(token)) == token


def test_parse_rejects_other_types() -> None:
    with pytest.raises(TypeError):
        parse_utc_datetime(1735732800)


def test_monotonic_clock_bumps_stalled_source() -> None:
    fixed = datetime(2025, 1, 1, 12, tzinfo=timezone.utc)
    clock = MonotonicClock(lambda: fixed)

    first = clock.now()
    second = clock.now()

    assert first == fixed
    assert second == fixed + timedelta(microseconds=1)
