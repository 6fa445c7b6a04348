"""Export services."""

from .geojson import export_batches_to_geojson, generate_batch_color

__all__ = ["export_batches_to_geojson", "generate_batch_color"]
