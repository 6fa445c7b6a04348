"""API routes for order intake, listing and delivery."""

from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...models.domain import Order, OrderStatus
from ...persistence.stores import BatchStore, OrderNotFound, OrderStore, PersistenceFailure
from ...schemas.orders import DeliveryResponse, OrderCreateRequest, OrderModel
from ...services.batching import mark_order_delivered
from ..dependencies import get_batch_store, get_order_store

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=List[OrderModel], status_code=status.HTTP_201_CREATED)
def create_orders(
    payload: OrderCreateRequest,
    order_store: OrderStore = Depends(get_order_store),
) -> List[OrderModel]:
    """Register new PENDING orders."""
    orders = [
        Order(
            order_id=item.order_id or uuid.uuid4().hex,
            postal_code=item.postal_code,
            weight=item.weight,
            address=item.address,
            customer_name=item.customer_name,
        )
        for item in payload.orders
    ]
    try:
        created = order_store.add(orders)
    except PersistenceFailure as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return [OrderModel.from_domain(order) for order in created]


@router.get("", response_model=List[OrderModel])
def list_orders(
    status_filter: Optional[OrderStatus] = Query(default=None, alias="status"),
    order_store: OrderStore = Depends(get_order_store),
) -> List[OrderModel]:
    try:
        orders = order_store.list(status_filter)
    except PersistenceFailure as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return [OrderModel.from_domain(order) for order in orders]


@router.post("/{order_id}/mark-delivered", response_model=DeliveryResponse)
def mark_delivered(
    order_id: str,
    order_store: OrderStore = Depends(get_order_store),
    batch_store: BatchStore = Depends(get_batch_store),
) -> DeliveryResponse:
    """Mark an ASSIGNED order as delivered and complete its batch if it was the last one."""
    try:
        result = mark_order_delivered(order_store, batch_store, order_id)
    except OrderNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except PersistenceFailure as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return DeliveryResponse(
        order=OrderModel.from_domain(result.order),
        batch_id=result.batch.batch_id if result.batch else None,
        batch_completed=result.batch_completed,
    )
