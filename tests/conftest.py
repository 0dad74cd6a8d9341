"""
Pytest configuration for buyer lead tests.

This file adds the project root to the Python path so that tests can import
from the domain, repositories, services and api packages, and provides shared
fixtures backed by the in-memory store.
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict

import pytest

# Add the project root to the Python path
# so tests can import domain, repositories, etc.
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from domain.time import MonotonicClock  # noqa: E402
from repositories.memory_store import InMemoryBuyerStore  # noqa: E402
from services.buyer_service import BuyerService  # noqa: E402
from services.history_service import HistoryRecorder  # noqa: E402
from services.import_service import ImportService  # noqa: E402

BASE_TIME = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class SteppingClock:
    """Deterministic clock: each call advances by one second from BASE_TIME."""

    def __init__(self, start: datetime = BASE_TIME, step: timedelta = timedelta(seconds=1)) -> None:
        self._next = start
        self._step = step

    def __call__(self) -> datetime:
        current = self._next
        self._next = current + self._step
        return current


@pytest.fixture
def store() -> InMemoryBuyerStore:
    return InMemoryBuyerStore()


@pytest.fixture
def clock() -> MonotonicClock:
    return MonotonicClock(SteppingClock())


@pytest.fixture
def history(store: InMemoryBuyerStore, clock: MonotonicClock) -> HistoryRecorder:
    return HistoryRecorder(store, clock)


@pytest.fixture
def buyer_service(store: InMemoryBuyerStore, history: HistoryRecorder, clock: MonotonicClock) -> BuyerService:
    return BuyerService(store, history=history, clock=clock)


@pytest.fixture
def import_service(store: InMemoryBuyerStore, history: HistoryRecorder, clock: MonotonicClock) -> ImportService:
    return ImportService(store, history=history, clock=clock)


@pytest.fixture
def valid_candidate() -> Dict[str, Any]:
    return {
        "full_name": "John Doe",
        "phone": "9876543210",
        "city": "Chandigarh",
        "property_type": "Apartment",
        "bhk": "Two",
        "purpose": "Buy",
        "timeline": "M0_3m",
        "source": "Website",
    }
