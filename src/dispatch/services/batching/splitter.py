"""Capacity-constrained splitting of spatial clusters into batches."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from ...models.domain import Order


@dataclass(slots=True)
class PlannedBatch:
    """A batch computed in memory, not yet persisted."""

    orders: list[Order] = field(default_factory=list)
    total_weight: float = 0.0

    @property
    def order_ids(self) -> list[str]:
        return [order.order_id for order in self.orders]

    @property
    def order_count(self) -> int:
        return len(self.orders)

    def add(self, order: Order) -> None:
        self.orders.append(order)
        self.total_weight += order.weight


def split_cluster(orders: Sequence[Order], max_orders: int, max_weight: float) -> list[PlannedBatch]:
    """Greedily cut ``orders`` into batches that respect both caps.

    Orders keep the sequence they arrive in. A running batch is closed as soon
    as the next order would push it over ``max_orders`` or ``max_weight``.
    An order heavier than ``max_weight`` on its own still gets a batch of its
    own rather than being dropped.
    """
    if max_orders < 1:
        raise ValueError("max_orders must be >= 1")
    if max_weight <= 0:
        raise ValueError("max_weight must be > 0")

    batches: list[PlannedBatch] = []
    current = PlannedBatch()
    for order in orders:
        over_count = current.order_count + 1 > max_orders
        over_weight = current.total_weight + order.weight > max_weight
        if current.orders and (over_count or over_weight):
            batches.append(current)
            current = PlannedBatch()
        current.add(order)
    if current.orders:
        batches.append(current)
    return batches
