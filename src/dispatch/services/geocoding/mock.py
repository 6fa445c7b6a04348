"""Offline geocoder for development and demos."""

from __future__ import annotations

from typing import Mapping

from ...models.domain import GeoPoint
from .base import GeocodeFailure


class MockGeocoder:
    """Deterministic postal-code to coordinate mapping.

    Codes present in ``known`` resolve to the given point; any other numeric
    code is spread over a small grid around (19, 72) by its last digit.
    Codes listed in ``failing`` always raise ``GeocodeFailure``.
    """

    def __init__(
        self,
        known: Mapping[str, GeoPoint] | None = None,
        failing: set[str] | None = None,
    ) -> None:
        self.known = dict(known or {})
        self.failing = set(failing or ())
        self.calls: list[str] = []

    def lookup(self, postal_code: str) -> GeoPoint:
        self.calls.append(postal_code)
        if postal_code in self.failing:
            raise GeocodeFailure(postal_code, "no results")
        if postal_code in self.known:
            return self.known[postal_code]
        try:
            base = int(postal_code)
        except ValueError:
            base = 0
        return GeoPoint(19 + (base % 10) * 0.1, 72 + (base % 10) * 0.1)
