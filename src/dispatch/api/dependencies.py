"""Process-wide collaborators injected into route handlers."""

from __future__ import annotations

import logging
from functools import lru_cache

from ..config import settings
from ..db.supabase import get_supabase_client
from ..persistence.database import SupabaseBatchStore, SupabaseOrderStore
from ..persistence.memory import InMemoryBatchStore, InMemoryOrderStore
from ..persistence.stores import BatchStore, OrderStore
from ..services.geocoding import GeocodeResolver, get_geocoder


@lru_cache()
def get_order_store() -> OrderStore:
    client = get_supabase_client()
    if client is None:
        logging.info("Using in-memory order store")
        return InMemoryOrderStore()
    return SupabaseOrderStore(client)


@lru_cache()
def get_batch_store() -> BatchStore:
    client = get_supabase_client()
    if client is None:
        logging.info("Using in-memory batch store")
        return InMemoryBatchStore()
    return SupabaseBatchStore(client)


@lru_cache()
def get_geocode_resolver() -> GeocodeResolver:
    """One resolver (and cache) per process."""
    return GeocodeResolver(get_geocoder(settings.geocoder_provider))
