"""High-level orchestration for batch generation runs."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Sequence

from ...config import settings
from ...models.domain import Batch, GeoPoint, Order
from ...persistence.stores import BatchStore, OrderStore
from ..geocoding.resolver import GeocodeResolver
from .kmeans import KMeansPartitioner, PartitionResult, compute_k
from .seeding import get_seeder
from .splitter import PlannedBatch, split_cluster

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class GenerationPlan:
    """Everything a run intends to write, computed before any write happens."""

    k: int
    locations: dict[str, GeoPoint]
    partition: PartitionResult
    batches: list[PlannedBatch]

    @property
    def order_count(self) -> int:
        return sum(batch.order_count for batch in self.batches)


@dataclass(slots=True)
class GenerationReport:
    batches: list[Batch]
    pending_count: int = 0
    k: int = 0
    iterations: int = 0
    converged: bool = True
    postal_codes_resolved: int = 0
    max_orders_per_batch: int = 0
    max_weight_per_batch: float = 0.0
    cluster_sizes: list[int] = field(default_factory=list)
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def summary(self) -> dict[str, Any]:
        return {
            "generated_at": self.generated_at.isoformat(),
            "pending_count": self.pending_count,
            "batch_count": len(self.batches),
            "k": self.k,
            "iterations": self.iterations,
            "converged": self.converged,
            "postal_codes_resolved": self.postal_codes_resolved,
            "max_orders_per_batch": self.max_orders_per_batch,
            "max_weight_per_batch": self.max_weight_per_batch,
            "cluster_sizes": self.cluster_sizes,
        }


def default_partitioner() -> KMeansPartitioner:
    return KMeansPartitioner(
        max_iterations=settings.kmeans_max_iterations,
        tolerance_km=settings.kmeans_tolerance_km,
        seeder=get_seeder(settings.kmeans_seeding),
    )


class BatchGenerator:
    """Turn the current PENDING orders into capacity-bounded batches.

    A run either completes fully or leaves the stores as it found them: the
    whole plan is computed first, and if any write fails the batches created
    so far are deleted before the error is re-raised.

    The generator holds no lock. Callers that can run it concurrently must
    serialise runs themselves.
    """

    def __init__(
        self,
        order_store: OrderStore,
        batch_store: BatchStore,
        resolver: GeocodeResolver,
        *,
        max_orders_per_batch: int | None = None,
        max_weight_per_batch: float | None = None,
        partitioner: KMeansPartitioner | None = None,
    ) -> None:
        self.order_store = order_store
        self.batch_store = batch_store
        self.resolver = resolver
        self.max_orders_per_batch = (
            settings.max_orders_per_batch if max_orders_per_batch is None else max_orders_per_batch
        )
        self.max_weight_per_batch = (
            settings.max_weight_per_batch if max_weight_per_batch is None else max_weight_per_batch
        )
        if self.max_orders_per_batch < 1:
            raise ValueError("max_orders_per_batch must be >= 1")
        if self.max_weight_per_batch <= 0:
            raise ValueError("max_weight_per_batch must be > 0")
        self.partitioner = partitioner or default_partitioner()

    def plan(self, orders: Sequence[Order]) -> GenerationPlan:
        k = compute_k(len(orders), self.max_orders_per_batch)
        locations = self.resolver.resolve_many(order.postal_code for order in orders)
        located = [replace(order, location=locations[order.postal_code.strip()]) for order in orders]

        partition = self.partitioner.partition(located, k) if located else PartitionResult([], 0, True)
        batches: list[PlannedBatch] = []
        for cluster in partition.non_empty():
            batches.extend(split_cluster(cluster.orders, self.max_orders_per_batch, self.max_weight_per_batch))
        return GenerationPlan(k=k, locations=locations, partition=partition, batches=batches)

    def generate(self) -> GenerationReport:
        pending = self.order_store.list_pending()
        report = GenerationReport(
            batches=[],
            pending_count=len(pending),
            max_orders_per_batch=self.max_orders_per_batch,
            max_weight_per_batch=self.max_weight_per_batch,
        )
        if not pending:
            logger.info("No pending orders; nothing to batch")
            return report

        logger.info(f"Generating batches for {len(pending)} pending orders")
        plan = self.plan(pending)
        report.k = plan.k
        report.iterations = plan.partition.iterations
        report.converged = plan.partition.converged
        report.postal_codes_resolved = len(plan.locations)
        report.cluster_sizes = [len(cluster.orders) for cluster in plan.partition.non_empty()]

        report.batches = self._apply(plan)
        logger.info(
            f"Created {len(report.batches)} batches from {plan.order_count} orders "
            f"(k={plan.k}, iterations={plan.partition.iterations}, converged={plan.partition.converged})"
        )
        return report

    def generate_batches(self) -> list[Batch]:
        return self.generate().batches

    def _apply(self, plan: GenerationPlan) -> list[Batch]:
        created: list[Batch] = []
        try:
            for planned in plan.batches:
                created.append(self.batch_store.create(planned.order_ids, planned.total_weight))
            # mark_assigned is all-or-nothing, so a failure here leaves no order flipped.
            self.order_store.mark_assigned([oid for batch in created for oid in batch.order_ids])
        except Exception:
            self._rollback(created)
            raise
        return created

    def _rollback(self, created: Sequence[Batch]) -> None:
        if not created:
            return
        logger.warning(f"Batch generation failed; deleting {len(created)} batches created in this run")
        try:
            self.batch_store.delete([batch.batch_id for batch in created])
        except Exception:
            logger.exception("Rollback failed; batches from the aborted run may remain")
