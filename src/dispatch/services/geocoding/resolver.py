"""Memoizing postal-code resolver."""

from __future__ import annotations

import logging
import threading
from typing import Iterable

from ...models.domain import GeoPoint
from .base import Geocoder

logger = logging.getLogger(__name__)


class GeocodeResolver:
    """Wrap a geocoder with a per-instance cache keyed by postal code.

    Each distinct postal code triggers at most one upstream lookup for the
    lifetime of the resolver. Failures are not cached. Reads are lock-free;
    the upstream call and cache write happen under a lock.
    """

    def __init__(self, geocoder: Geocoder, cache: dict[str, GeoPoint] | None = None) -> None:
        self.geocoder = geocoder
        self._cache: dict[str, GeoPoint] = cache if cache is not None else {}
        self._lock = threading.Lock()
        self.lookups = 0

    def resolve(self, postal_code: str) -> GeoPoint:
        key = postal_code.strip()
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        with self._lock:
            # Another thread may have filled the entry while we waited.
            cached = self._cache.get(key)
            if cached is not None:
                return cached
            self.lookups += 1
            point = self.geocoder.lookup(key)
            self._cache[key] = point
            logger.debug(f"Geocoded '{key}' -> ({point.latitude:.5f}, {point.longitude:.5f})")
            return point

    def resolve_many(self, postal_codes: Iterable[str]) -> dict[str, GeoPoint]:
        """Resolve each distinct code once, in first-seen order.

        The first ``GeocodeFailure`` propagates; nothing is returned partially.
        """
        resolved: dict[str, GeoPoint] = {}
        for code in postal_codes:
            key = code.strip()
            if key in resolved:
                continue
            resolved[key] = self.resolve(key)
        return resolved

    def cache_info(self) -> dict[str, int]:
        return {"entries": len(self._cache), "lookups": self.lookups}

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
