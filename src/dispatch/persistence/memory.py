"""Thread-safe in-memory stores, used when no database is configured."""

from __future__ import annotations

import threading
import uuid
from collections import Counter
from dataclasses import replace
from typing import Iterable, Optional, Sequence

from ..models.domain import Batch, Order, OrderStatus
from .stores import BatchNotFound, OrderNotFound, PersistenceFailure


class InMemoryOrderStore:
    def __init__(self, orders: Iterable[Order] = ()) -> None:
        self._orders: dict[str, Order] = {}
        self._lock = threading.Lock()
        self.add(orders)

    def add(self, orders: Iterable[Order]) -> list[Order]:
        orders = list(orders)
        repeated = sorted(oid for oid, count in Counter(order.order_id for order in orders).items() if count > 1)
        if repeated:
            raise PersistenceFailure(f"Duplicate order ids in request: {repeated}")
        with self._lock:
            existing = [order.order_id for order in orders if order.order_id in self._orders]
            if existing:
                raise PersistenceFailure(f"Orders already exist: {existing}")
            for order in orders:
                self._orders[order.order_id] = order
        return orders

    def list(self, status: Optional[OrderStatus] = None) -> list[Order]:
        with self._lock:
            orders = list(self._orders.values())
        if status is not None:
            orders = [order for order in orders if order.status == status]
        return orders

    def list_pending(self) -> list[Order]:
        return [replace(order) for order in self.list(OrderStatus.PENDING)]

    def get_many(self, order_ids: Sequence[str]) -> list[Order]:
        with self._lock:
            missing = [oid for oid in order_ids if oid not in self._orders]
            if missing:
                raise OrderNotFound(missing)
            return [self._orders[oid] for oid in order_ids]

    def _set_status(self, order_ids: Sequence[str], status: OrderStatus, *, require: OrderStatus | None) -> None:
        with self._lock:
            missing = [oid for oid in order_ids if oid not in self._orders]
            if missing:
                raise OrderNotFound(missing)
            if require is not None:
                conflicting = [oid for oid in order_ids if self._orders[oid].status != require]
                if conflicting:
                    raise PersistenceFailure(
                        f"Orders not in {require.value} state: {conflicting}"
                    )
            for oid in order_ids:
                self._orders[oid].status = status

    def mark_assigned(self, order_ids: Sequence[str]) -> None:
        self._set_status(order_ids, OrderStatus.ASSIGNED, require=OrderStatus.PENDING)

    def mark_pending(self, order_ids: Sequence[str]) -> None:
        self._set_status(order_ids, OrderStatus.PENDING, require=None)

    def mark_delivered(self, order_ids: Sequence[str]) -> None:
        self._set_status(order_ids, OrderStatus.DELIVERED, require=OrderStatus.ASSIGNED)


class InMemoryBatchStore:
    def __init__(self) -> None:
        self._batches: dict[str, Batch] = {}
        self._lock = threading.Lock()

    def create(self, order_ids: Sequence[str], total_weight: float) -> Batch:
        if not order_ids:
            raise PersistenceFailure("A batch needs at least one order")
        batch = Batch(batch_id=uuid.uuid4().hex, order_ids=tuple(order_ids), total_weight=total_weight)
        with self._lock:
            self._batches[batch.batch_id] = batch
        return replace(batch)

    def delete(self, batch_ids: Sequence[str]) -> None:
        with self._lock:
            for batch_id in batch_ids:
                self._batches.pop(batch_id, None)

    def get(self, batch_id: str) -> Batch:
        with self._lock:
            batch = self._batches.get(batch_id)
        if batch is None:
            raise BatchNotFound(batch_id)
        return replace(batch)

    def list(self, driver_id: Optional[str] = None) -> list[Batch]:
        with self._lock:
            batches = [replace(batch) for batch in self._batches.values()]
        if driver_id is not None:
            batches = [batch for batch in batches if batch.assigned_driver_id == driver_id]
        return batches

    def save(self, batch: Batch) -> Batch:
        with self._lock:
            current = self._batches.get(batch.batch_id)
            if current is None:
                raise BatchNotFound(batch.batch_id)
            if current.order_ids != batch.order_ids:
                raise PersistenceFailure(f"Batch '{batch.batch_id}' membership is immutable")
            self._batches[batch.batch_id] = replace(batch)
        return replace(batch)
