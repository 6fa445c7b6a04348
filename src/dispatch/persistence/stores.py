"""Store contracts consumed by the batch generator."""

from __future__ import annotations

from typing import Iterable, Optional, Protocol, Sequence

from ..models.domain import Batch, Order, OrderStatus


class PersistenceFailure(RuntimeError):
    """A store rejected a read or write."""


class OrderNotFound(PersistenceFailure):
    def __init__(self, order_ids: Sequence[str]) -> None:
        self.order_ids = list(order_ids)
        super().__init__(f"Unknown order ids: {self.order_ids}")


class BatchNotFound(KeyError):
    def __init__(self, batch_id: str) -> None:
        self.batch_id = batch_id
        super().__init__(batch_id)

    def __str__(self) -> str:
        return f"Batch '{self.batch_id}' not found"


class OrderStore(Protocol):
    def list_pending(self) -> list[Order]:
        """Return PENDING orders in a stable (creation) order."""
        ...

    def mark_assigned(self, order_ids: Sequence[str]) -> None:
        """Flip PENDING orders to ASSIGNED; reject the whole call if any is not PENDING."""
        ...

    def mark_pending(self, order_ids: Sequence[str]) -> None:
        ...

    def mark_delivered(self, order_ids: Sequence[str]) -> None:
        """Flip ASSIGNED orders to DELIVERED; reject the whole call if any is not ASSIGNED."""
        ...

    def get_many(self, order_ids: Sequence[str]) -> list[Order]:
        """Return orders in the requested order or raise ``OrderNotFound``."""
        ...

    def add(self, orders: Iterable[Order]) -> list[Order]:
        """Insert all orders or none of them."""
        ...

    def list(self, status: Optional[OrderStatus] = None) -> list[Order]:
        ...


class BatchStore(Protocol):
    def create(self, order_ids: Sequence[str], total_weight: float) -> Batch:
        ...

    def delete(self, batch_ids: Sequence[str]) -> None:
        ...

    def get(self, batch_id: str) -> Batch:
        """Return the batch or raise ``BatchNotFound``."""
        ...

    def list(self, driver_id: Optional[str] = None) -> list[Batch]:
        ...

    def save(self, batch: Batch) -> Batch:
        """Persist driver/status changes; membership is never rewritten."""
        ...
