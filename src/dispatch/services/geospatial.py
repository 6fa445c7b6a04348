"""Geospatial helper functions."""

from __future__ import annotations

import math
from typing import Sequence

from shapely.geometry import MultiPoint

from ..models.domain import GeoPoint

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance in kilometres between two points."""

    return haversine_km(a.latitude, a.longitude, b.latitude, b.longitude)


def mean_point(points: Sequence[GeoPoint]) -> GeoPoint:
    """Arithmetic mean of the coordinates (the k-means centroid)."""

    if not points:
        raise ValueError("mean_point requires at least one point")
    lat = sum(p.latitude for p in points) / len(points)
    lon = sum(p.longitude for p in points) / len(points)
    return GeoPoint(lat, lon)


def coverage_polygon(points: Sequence[GeoPoint]) -> list[tuple[float, float]]:
    """Return the convex hull of the points as a closed ring of (lat, lon) pairs.

    Degenerate inputs (a single location or collinear points) return the hull's
    vertices without closing them: one pair for a point, two for a line.
    """

    if not points:
        return []
    hull = MultiPoint([(p.longitude, p.latitude) for p in points]).convex_hull
    if hull.geom_type == "Polygon":
        coords = list(hull.exterior.coords)
    else:
        coords = list(hull.coords)
    return [(lat, lng) for lng, lat in coords]
