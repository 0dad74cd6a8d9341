"""
Store selection from the environment.

- BUYER_STORE: "supabase" (default) or "memory"

The in-memory store keeps nothing between processes; it serves local runs,
dry-run imports and tests.
"""

from __future__ import annotations

import os

from repositories.buyer_store import BuyerStore


def create_store(backend: str | None = None) -> BuyerStore:
    backend = (backend or os.getenv("BUYER_STORE", "supabase")).strip().lower()
    if backend == "memory":
        from repositories.memory_store import InMemoryBuyerStore

        return InMemoryBuyerStore()
    if backend == "supabase":
        from repositories.supabase_store import SupabaseBuyerStore

        return SupabaseBuyerStore()
    raise RuntimeError(f"Unsupported BUYER_STORE backend: {backend!r} (expected 'supabase' or 'memory')")


__all__ = ["create_store"]
