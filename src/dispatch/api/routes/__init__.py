"""Route group exports."""

from . import batches, health, orders

__all__ = ["batches", "health", "orders"]
