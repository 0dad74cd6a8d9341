"""
Domain: the authenticated caller.

Session issuance happens outside this core; callers resolve an Actor and pass its
id along with every mutation. The owner-or-admin decision lives here so the HTTP
layer and scripts apply the same rule.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from domain.buyer import BuyerRecord


class ActorRole(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"


@dataclass(frozen=True, slots=True)
class Actor:
    actor_id: str
    role: ActorRole = ActorRole.USER

    def __post_init__(self) -> None:
        if not self.actor_id or not self.actor_id.strip():
            raise ValueError("actor_id must be a non-empty string")

    @property
    def is_admin(self) -> bool:
        return self.role is ActorRole.ADMIN

    def can_modify(self, record: BuyerRecord) -> bool:
        """Owners may edit their own buyers; admins may edit any."""
        return self.is_admin or record.owner_id == self.actor_id


__all__ = ["Actor", "ActorRole"]
