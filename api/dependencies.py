"""
FastAPI dependencies: store selection, services, actor resolution, rate limits.

Configuration comes from the environment (loaded from .env by the Supabase
client module):
- BUYER_STORE: "supabase" (default) or "memory"
"""

from __future__ import annotations

from functools import lru_cache
from typing import Callable, Dict, Optional

from fastapi import Depends, Header, HTTPException

from domain.actor import Actor, ActorRole
from domain.time import MonotonicClock
from repositories.buyer_store import BuyerStore
from repositories.store_factory import create_store
from services.buyer_service import BuyerService
from services.import_service import ImportService
from services.rate_limiter import RateLimiter, default_limiters


@lru_cache(maxsize=1)
def get_store() -> BuyerStore:
    return create_store()


@lru_cache(maxsize=1)
def get_clock() -> MonotonicClock:
    # One clock per process so updated_at tokens keep increasing across requests
    return MonotonicClock()


def get_buyer_service(store: BuyerStore = Depends(get_store)) -> BuyerService:
    return BuyerService(store, clock=get_clock())


def get_import_service(store: BuyerStore = Depends(get_store)) -> ImportService:
    return ImportService(store, clock=get_clock())


@lru_cache(maxsize=1)
def get_rate_limiters() -> Dict[str, RateLimiter]:
    return default_limiters()


def get_actor(
    x_actor_id: Optional[str] = Header(None, description="Authenticated user id"),
    x_actor_role: Optional[str] = Header(None, description="USER or ADMIN"),
) -> Actor:
    """Resolve the caller from headers set by the session layer in front of this API."""

    if not x_actor_id or not x_actor_id.strip():
        raise HTTPException(status_code=401, detail="Unauthorized")

    role = ActorRole.USER
    if x_actor_role:
        try:
            role = ActorRole(x_actor_role.strip().upper())
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid actor role: '{x_actor_role}'")

    return Actor(actor_id=x_actor_id.strip(), role=role)


def rate_limited(limiter_name: str) -> Callable[..., Actor]:
    """Dependency factory: resolve the actor and charge one request to `limiter_name`."""

    def dependency(
        actor: Actor = Depends(get_actor),
        limiters: Dict[str, RateLimiter] = Depends(get_rate_limiters),
    ) -> Actor:
        limiters[limiter_name].enforce(actor.actor_id)
        return actor

    return dependency
