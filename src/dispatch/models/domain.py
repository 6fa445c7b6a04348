"""Domain models for orders, coordinates and delivery batches."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    ASSIGNED = "ASSIGNED"
    DELIVERED = "DELIVERED"


class BatchStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True, slots=True)
class GeoPoint:
    """A latitude/longitude pair in decimal degrees."""

    latitude: float
    longitude: float

    def as_tuple(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)


@dataclass(slots=True)
class Order:
    """A delivery order awaiting (or already placed in) a batch.

    ``location`` is attached by the batch generator once the postal code has
    been geocoded; stores never need to persist it.
    """

    order_id: str
    postal_code: str
    weight: float
    address: str = ""
    status: OrderStatus = OrderStatus.PENDING
    customer_name: Optional[str] = None
    location: Optional[GeoPoint] = None
    created_at: datetime = field(default_factory=_utcnow)


@dataclass(slots=True)
class Batch:
    """A persisted group of orders delivered together by one driver trip."""

    batch_id: str
    order_ids: tuple[str, ...]
    total_weight: float
    assigned_driver_id: Optional[str] = None
    status: BatchStatus = BatchStatus.PENDING
    created_at: datetime = field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None
    completion_notes: Optional[str] = None

    @property
    def order_count(self) -> int:
        return len(self.order_ids)
