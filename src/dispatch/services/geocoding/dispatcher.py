"""Factory for geocoders based on configuration."""

from __future__ import annotations

from typing import Any

from .base import Geocoder
from .mock import MockGeocoder
from .opencage import OpenCageGeocoder


def get_geocoder(provider: str, **kwargs: Any) -> Geocoder:
    match provider:
        case "opencage":
            return OpenCageGeocoder(**kwargs)
        case "mock":
            return MockGeocoder(**kwargs)
        case _:
            raise ValueError(f"Unknown geocoder provider '{provider}'.")
