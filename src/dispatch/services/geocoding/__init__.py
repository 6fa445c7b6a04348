"""Postal-code geocoding."""

from .base import GeocodeFailure, Geocoder
from .dispatcher import get_geocoder
from .mock import MockGeocoder
from .opencage import OpenCageGeocoder
from .resolver import GeocodeResolver

__all__ = [
    "GeocodeFailure",
    "Geocoder",
    "GeocodeResolver",
    "MockGeocoder",
    "OpenCageGeocoder",
    "get_geocoder",
]
