"""Pydantic request/response models for order endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from ..models.domain import Order, OrderStatus


class OrderCreate(BaseModel):
    order_id: Optional[str] = Field(default=None, description="Client-supplied id; generated when omitted.")
    postal_code: str = Field(..., min_length=1)
    weight: float = Field(..., gt=0, description="Order weight in kilograms.")
    address: str = Field(default="")
    customer_name: Optional[str] = None

    @field_validator("postal_code")
    @classmethod
    def strip_postal_code(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("postal_code must not be blank")
        return value


class OrderCreateRequest(BaseModel):
    orders: List[OrderCreate] = Field(..., min_length=1)


class OrderModel(BaseModel):
    order_id: str
    postal_code: str
    weight: float
    address: str
    status: OrderStatus
    customer_name: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_domain(cls, order: Order) -> "OrderModel":
        return cls(
            order_id=order.order_id,
            postal_code=order.postal_code,
            weight=order.weight,
            address=order.address,
            status=order.status,
            customer_name=order.customer_name,
            created_at=order.created_at,
        )


class DeliveryResponse(BaseModel):
    order: OrderModel
    batch_id: Optional[str] = None
    batch_completed: bool = False
