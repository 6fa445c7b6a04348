"""Supabase-backed order and batch stores."""

from __future__ import annotations

import logging
import uuid
from collections import Counter
from datetime import datetime
from typing import Any, Iterable, Optional, Sequence

from ..models.domain import Batch, BatchStatus, Order, OrderStatus
from .stores import BatchNotFound, OrderNotFound, PersistenceFailure

logger = logging.getLogger(__name__)

ORDERS_TABLE = "orders"
BATCHES_TABLE = "batches"


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def order_from_row(row: dict[str, Any]) -> Order:
    created_at = _parse_datetime(row.get("created_at"))
    order = Order(
        order_id=str(row["id"]),
        postal_code=str(row["postal_code"]).strip(),
        weight=float(row["weight"]),
        address=row.get("address") or "",
        status=OrderStatus(row.get("status") or OrderStatus.PENDING.value),
        customer_name=row.get("customer_name"),
    )
    if created_at is not None:
        order.created_at = created_at
    return order


def order_to_row(order: Order) -> dict[str, Any]:
    return {
        "id": order.order_id,
        "postal_code": order.postal_code,
        "weight": order.weight,
        "address": order.address,
        "status": order.status.value,
        "customer_name": order.customer_name,
        "created_at": order.created_at.isoformat(),
    }


def batch_from_row(row: dict[str, Any]) -> Batch:
    batch = Batch(
        batch_id=str(row["id"]),
        order_ids=tuple(str(oid) for oid in (row.get("order_ids") or [])),
        total_weight=float(row.get("total_weight") or 0.0),
        assigned_driver_id=row.get("assigned_driver_id"),
        status=BatchStatus(row.get("status") or BatchStatus.PENDING.value),
        completed_at=_parse_datetime(row.get("completed_at")),
        completion_notes=row.get("completion_notes"),
    )
    created_at = _parse_datetime(row.get("created_at"))
    if created_at is not None:
        batch.created_at = created_at
    return batch


def batch_to_row(batch: Batch) -> dict[str, Any]:
    return {
        "id": batch.batch_id,
        "order_ids": list(batch.order_ids),
        "total_weight": batch.total_weight,
        "assigned_driver_id": batch.assigned_driver_id,
        "status": batch.status.value,
        "created_at": batch.created_at.isoformat(),
        "completed_at": batch.completed_at.isoformat() if batch.completed_at else None,
        "completion_notes": batch.completion_notes,
    }


def _execute(query: Any, action: str) -> list[dict[str, Any]]:
    try:
        response = query.execute()
    except Exception as exc:
        logger.warning(f"Supabase {action} failed: {exc}")
        raise PersistenceFailure(f"Failed to {action}: {exc}") from exc
    return list(response.data or [])


class SupabaseOrderStore:
    def __init__(self, client: Any) -> None:
        self.client = client

    def list(self, status: Optional[OrderStatus] = None) -> list[Order]:
        query = self.client.table(ORDERS_TABLE).select("*")
        if status is not None:
            query = query.eq("status", status.value)
        rows = _execute(query.order("created_at"), "list orders")
        return [order_from_row(row) for row in rows]

    def list_pending(self) -> list[Order]:
        return self.list(OrderStatus.PENDING)

    def get_many(self, order_ids: Sequence[str]) -> list[Order]:
        if not order_ids:
            return []
        rows = _execute(
            self.client.table(ORDERS_TABLE).select("*").in_("id", list(order_ids)),
            "load orders",
        )
        by_id = {str(row["id"]): order_from_row(row) for row in rows}
        missing = [oid for oid in order_ids if oid not in by_id]
        if missing:
            raise OrderNotFound(missing)
        return [by_id[oid] for oid in order_ids]

    def add(self, orders: Iterable[Order]) -> list[Order]:
        orders = list(orders)
        if not orders:
            return []
        repeated = sorted(oid for oid, count in Counter(order.order_id for order in orders).items() if count > 1)
        if repeated:
            raise PersistenceFailure(f"Duplicate order ids in request: {repeated}")
        # A single multi-row insert either stores every row or none.
        _execute(
            self.client.table(ORDERS_TABLE).insert([order_to_row(order) for order in orders]),
            "insert orders",
        )
        return orders

    def _transition(self, order_ids: Sequence[str], status: OrderStatus, require: OrderStatus) -> None:
        rows = _execute(
            self.client.table(ORDERS_TABLE)
            .update({"status": status.value})
            .in_("id", list(order_ids))
            .eq("status", require.value),
            f"mark orders {status.value.lower()}",
        )
        updated = [str(row["id"]) for row in rows]
        if len(updated) != len(order_ids):
            # Part of the set was not in the required state; undo our half of the update.
            if updated:
                _execute(
                    self.client.table(ORDERS_TABLE).update({"status": require.value}).in_("id", updated),
                    f"revert orders to {require.value.lower()}",
                )
            conflicting = sorted(set(order_ids) - set(updated))
            raise PersistenceFailure(f"Orders not in {require.value} state: {conflicting}")

    def mark_assigned(self, order_ids: Sequence[str]) -> None:
        if order_ids:
            self._transition(order_ids, OrderStatus.ASSIGNED, require=OrderStatus.PENDING)

    def mark_delivered(self, order_ids: Sequence[str]) -> None:
        if order_ids:
            self._transition(order_ids, OrderStatus.DELIVERED, require=OrderStatus.ASSIGNED)

    def mark_pending(self, order_ids: Sequence[str]) -> None:
        if not order_ids:
            return
        _execute(
            self.client.table(ORDERS_TABLE)
            .update({"status": OrderStatus.PENDING.value})
            .in_("id", list(order_ids)),
            "revert orders to pending",
        )


class SupabaseBatchStore:
    def __init__(self, client: Any) -> None:
        self.client = client

    def create(self, order_ids: Sequence[str], total_weight: float) -> Batch:
        if not order_ids:
            raise PersistenceFailure("A batch needs at least one order")
        batch = Batch(batch_id=str(uuid.uuid4()), order_ids=tuple(order_ids), total_weight=total_weight)
        rows = _execute(self.client.table(BATCHES_TABLE).insert(batch_to_row(batch)), "create batch")
        return batch_from_row(rows[0]) if rows else batch

    def delete(self, batch_ids: Sequence[str]) -> None:
        if not batch_ids:
            return
        _execute(
            self.client.table(BATCHES_TABLE).delete().in_("id", list(batch_ids)),
            "delete batches",
        )

    def get(self, batch_id: str) -> Batch:
        rows = _execute(
            self.client.table(BATCHES_TABLE).select("*").eq("id", batch_id).limit(1),
            "load batch",
        )
        if not rows:
            raise BatchNotFound(batch_id)
        return batch_from_row(rows[0])

    def list(self, driver_id: Optional[str] = None) -> list[Batch]:
        query = self.client.table(BATCHES_TABLE).select("*")
        if driver_id is not None:
            query = query.eq("assigned_driver_id", driver_id)
        rows = _execute(query.order("created_at"), "list batches")
        return [batch_from_row(row) for row in rows]

    def save(self, batch: Batch) -> Batch:
        row = batch_to_row(batch)
        # Membership and creation time are written once by create().
        row.pop("order_ids")
        row.pop("created_at")
        rows = _execute(
            self.client.table(BATCHES_TABLE).update(row).eq("id", batch.batch_id),
            "update batch",
        )
        if not rows:
            raise BatchNotFound(batch.batch_id)
        return batch_from_row(rows[0])
