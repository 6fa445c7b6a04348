"""Contracts shared by geocoder implementations."""

from __future__ import annotations

from typing import Protocol

from ...models.domain import GeoPoint


class GeocodeFailure(LookupError):
    """Raised when a postal code cannot be resolved to coordinates."""

    def __init__(self, postal_code: str, reason: str | None = None) -> None:
        self.postal_code = postal_code
        self.reason = reason
        message = f"Geocode failed for postal code '{postal_code}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class Geocoder(Protocol):
    def lookup(self, postal_code: str) -> GeoPoint:
        """Return the coordinates for ``postal_code`` or raise ``GeocodeFailure``."""
        ...
