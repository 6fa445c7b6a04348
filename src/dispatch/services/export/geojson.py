"""GeoJSON export of batches for map views."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Sequence

from ...models.domain import Batch, GeoPoint, Order
from ..geospatial import coverage_polygon, mean_point


def generate_batch_color(index: int) -> str:
    """Generate distinct colors for batches."""
    colors = [
        "#02d8e0", "#e0003e", "#38e000", "#0000c1", "#e0e005",
        "#611cc7", "#e0af00", "#13aae0", "#a4d819", "#00e0bb",
        "#e000a2", "#e000e0", "#09e0e0", "#e0002f", "#22e000",
        "#15dde0", "#e00017", "#08e000", "#3100e0", "#e0bb0b",
    ]
    return colors[index % len(colors)]


def _coverage_geometry(points: Sequence[GeoPoint]) -> Dict[str, Any]:
    ring = coverage_polygon(points)
    # GeoJSON positions are [lon, lat].
    positions = [[lon, lat] for lat, lon in ring]
    if len(positions) >= 4:
        return {"type": "Polygon", "coordinates": [positions]}
    if len(positions) >= 2:
        return {"type": "LineString", "coordinates": positions}
    return {"type": "Point", "coordinates": positions[0]}


def export_batches_to_geojson(
    batches: Sequence[Batch],
    orders: Mapping[str, Order],
    locations: Mapping[str, GeoPoint],
) -> Dict[str, Any]:
    """Build a FeatureCollection with one area feature per batch and one point per order.

    Args:
        batches: Batches to draw.
        orders: Orders by id (members of the batches).
        locations: Resolved coordinates keyed by postal code.

    Orders whose postal code has no entry in ``locations`` are left off the map.
    """
    features: List[Dict[str, Any]] = []

    for idx, batch in enumerate(batches):
        color = generate_batch_color(idx)
        points: list[GeoPoint] = []
        for order_id in batch.order_ids:
            order = orders.get(order_id)
            if order is None:
                continue
            point = locations.get(order.postal_code.strip())
            if point is None:
                continue
            points.append(point)
            features.append(
                {
                    "type": "Feature",
                    "geometry": {"type": "Point", "coordinates": [point.longitude, point.latitude]},
                    "properties": {
                        "kind": "order",
                        "batch_id": batch.batch_id,
                        "order_id": order.order_id,
                        "postal_code": order.postal_code,
                        "weight": order.weight,
                        "color": color,
                    },
                }
            )

        if not points:
            continue
        centroid = mean_point(points)
        features.append(
            {
                "type": "Feature",
                "geometry": _coverage_geometry(points),
                "properties": {
                    "kind": "batch",
                    "batch_id": batch.batch_id,
                    "order_count": batch.order_count,
                    "total_weight": batch.total_weight,
                    "status": batch.status.value,
                    "assigned_driver_id": batch.assigned_driver_id,
                    "centroid": [centroid.latitude, centroid.longitude],
                    "color": color,
                },
            }
        )

    return {"type": "FeatureCollection", "features": features}
