"""Post-generation batch bookkeeping: driver assignment, deliveries, completion and stats."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from ...models.domain import Batch, BatchStatus, Order, OrderStatus
from ...persistence.stores import BatchStore, OrderStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class BatchStats:
    counts: dict[str, int] = field(default_factory=lambda: {status.value: 0 for status in BatchStatus})
    total_weight: float = 0.0

    @property
    def total(self) -> int:
        return sum(self.counts.values())


def assign_driver(batch_store: BatchStore, batch_id: str, driver_id: str) -> Batch:
    """Attach a driver to a batch and move it to IN_PROGRESS."""
    if not driver_id or not driver_id.strip():
        raise ValueError("driver_id must not be empty")
    batch = batch_store.get(batch_id)
    if batch.status in (BatchStatus.COMPLETED, BatchStatus.CANCELLED):
        raise ValueError(f"Batch '{batch_id}' is {batch.status.value} and cannot be reassigned")
    batch.assigned_driver_id = driver_id.strip()
    batch.status = BatchStatus.IN_PROGRESS
    logger.info(f"Assigned driver {batch.assigned_driver_id} to batch {batch_id}")
    return batch_store.save(batch)


def check_and_update_batch_status(batch_store: BatchStore, order_store: OrderStore, batch_id: str) -> Batch:
    """Mark the batch COMPLETED once every member order has been delivered."""
    batch = batch_store.get(batch_id)
    if batch.status == BatchStatus.COMPLETED:
        return batch

    orders = order_store.get_many(batch.order_ids)
    if orders and all(order.status == OrderStatus.DELIVERED for order in orders):
        batch.status = BatchStatus.COMPLETED
        batch.completed_at = datetime.now(timezone.utc)
        batch.completion_notes = f"All {len(orders)} orders delivered successfully"
        logger.info(f"Batch {batch_id} marked as COMPLETED")
        return batch_store.save(batch)
    return batch


def compute_batch_stats(batch_store: BatchStore) -> BatchStats:
    stats = BatchStats()
    for batch in batch_store.list():
        stats.counts[batch.status.value] = stats.counts.get(batch.status.value, 0) + 1
        stats.total_weight += batch.total_weight
    return stats


@dataclass(slots=True)
class DeliveryResult:
    order: Order
    batch: Optional[Batch] = None

    @property
    def batch_completed(self) -> bool:
        return self.batch is not None and self.batch.status == BatchStatus.COMPLETED


def mark_order_delivered(order_store: OrderStore, batch_store: BatchStore, order_id: str) -> DeliveryResult:
    """Record a delivery and complete the containing batch when it was the last one."""
    (order,) = order_store.get_many([order_id])
    if order.status != OrderStatus.ASSIGNED:
        raise ValueError(f"Order '{order_id}' is {order.status.value}; only ASSIGNED orders can be delivered")
    order_store.mark_delivered([order_id])
    (order,) = order_store.get_many([order_id])
    logger.info(f"Order {order_id} marked as delivered")

    for batch in batch_store.list():
        if order_id in batch.order_ids:
            return DeliveryResult(order, check_and_update_batch_status(batch_store, order_store, batch.batch_id))
    return DeliveryResult(order)
