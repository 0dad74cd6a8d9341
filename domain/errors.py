"""
Domain: error taxonomy for the buyer leads core.

Every error is raised at the point of detection and carries enough structure
for callers (HTTP layer, CLI scripts) to render per-field or per-row feedback.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional, Sequence
from uuid import UUID


class BuyerLeadsError(Exception):
    """Base exception for the buyer leads core."""
    pass


class RuleKind(str, Enum):
    """Kind of validation rule a field failed."""

    REQUIRED = "required"
    TYPE = "type"
    RANGE = "range"
    ENUM = "enum"
    PATTERN = "pattern"
    CROSS_FIELD = "cross_field"


@dataclass(frozen=True, slots=True)
class FieldError:
    """A single failed rule, attached to the field the user has to fix."""

    field: str
    message: str
    rule: RuleKind

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message, "rule": self.rule.value}


class ValidationError(BuyerLeadsError):
    """User input is malformed. Carries every FieldError found, never just the first."""

    def __init__(self, errors: Sequence[FieldError]) -> None:
        self.errors: List[FieldError] = list(errors)
        summary = "; ".join(f"{e.field}: {e.message}" for e in self.errors)
        super().__init__(f"Validation failed: {summary}")

    def fields(self) -> set[str]:
        return {e.field for e in self.errors}


class ConcurrencyConflict(BuyerLeadsError):
    """The caller's updated_at token is stale; re-fetch and retry with fresh state."""

    def __init__(
        self,
        buyer_id: UUID,
        expected_updated_at: datetime,
        actual_updated_at: Optional[datetime] = None,
    ) -> None:
        self.buyer_id = buyer_id
        self.expected_updated_at = expected_updated_at
        self.actual_updated_at = actual_updated_at
        super().__init__(
            f"Buyer {buyer_id} was modified concurrently "
            f"(expected updated_at {expected_updated_at.isoformat()})"
        )


class NotFound(BuyerLeadsError):
    """Referenced buyer id does not exist."""

    def __init__(self, buyer_id: UUID) -> None:
        self.buyer_id = buyer_id
        super().__init__(f"Buyer not found: {buyer_id}")


class StorageError(BuyerLeadsError):
    """Underlying store failure. Not retried by this core."""
    pass


class BatchLimitExceeded(BuyerLeadsError):
    """Import batch is larger than the allowed maximum; no rows were processed."""

    def __init__(self, row_count: int, limit: int) -> None:
        self.row_count = row_count
        self.limit = limit
        super().__init__(f"CSV exceeds {limit} rows limit (got {row_count} rows)")


class RateLimitExceeded(BuyerLeadsError):
    """Actor exceeded its request quota for the current window."""

    def __init__(self, key: str, retry_after_seconds: float) -> None:
        self.key = key
        self.retry_after_seconds = retry_after_seconds
        super().__init__(f"Rate limit exceeded for {key}; retry in {retry_after_seconds:.0f}s")


__all__ = [
    "BatchLimitExceeded",
    "BuyerLeadsError",
    "ConcurrencyConflict",
    "FieldError",
    "NotFound",
    "RateLimitExceeded",
    "RuleKind",
    "StorageError",
    "ValidationError",
]
