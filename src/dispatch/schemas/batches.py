"""Pydantic request/response models for batch endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional, Sequence

from pydantic import BaseModel, Field

from ..models.domain import Batch, BatchStatus, Order
from .orders import OrderModel


class BatchGenerationRequest(BaseModel):
    max_orders_per_batch: Optional[int] = Field(default=None, ge=1, description="Overrides the configured order cap.")
    max_weight_per_batch: Optional[float] = Field(default=None, gt=0, description="Overrides the configured weight cap.")
    seeding: Optional[Literal["first_points", "kmeans++"]] = Field(
        default=None, description="Centroid initialisation strategy."
    )
    persist: bool = Field(default=True, description="Whether to write run outputs to files.")
    requested_by: Optional[str] = Field(default=None, description="Person or system requesting the run.")
    notes: Optional[str] = Field(default=None, description="Free-form notes captured with the run.")


class BatchModel(BaseModel):
    batch_id: str
    order_ids: List[str]
    order_count: int
    total_weight: float
    assigned_driver_id: Optional[str] = None
    status: BatchStatus
    created_at: datetime
    completed_at: Optional[datetime] = None
    completion_notes: Optional[str] = None

    @classmethod
    def from_domain(cls, batch: Batch) -> "BatchModel":
        return cls(
            batch_id=batch.batch_id,
            order_ids=list(batch.order_ids),
            order_count=batch.order_count,
            total_weight=batch.total_weight,
            assigned_driver_id=batch.assigned_driver_id,
            status=batch.status,
            created_at=batch.created_at,
            completed_at=batch.completed_at,
            completion_notes=batch.completion_notes,
        )


class BatchGenerationResponse(BaseModel):
    message: str
    batches: List[BatchModel]
    metadata: dict


class AssignDriverRequest(BaseModel):
    driver_id: str = Field(..., min_length=1)


class BatchStatsModel(BaseModel):
    counts: dict[str, int]
    total: int
    total_weight: float


class BatchDetailsModel(BatchModel):
    orders: List[OrderModel]

    @classmethod
    def from_domain_with_orders(cls, batch: Batch, orders: Sequence[Order]) -> "BatchDetailsModel":
        base = BatchModel.from_domain(batch)
        return cls(**base.model_dump(), orders=[OrderModel.from_domain(order) for order in orders])
