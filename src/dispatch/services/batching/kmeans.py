"""Deterministic k-means partitioning of geocoded orders."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Sequence

from ...models.domain import GeoPoint, Order
from ..geospatial import distance, mean_point
from .seeding import CentroidSeeder, FirstPointsSeeder

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 20


@dataclass(slots=True)
class Cluster:
    """Orders currently closest to one centroid slot."""

    index: int
    centroid: GeoPoint
    orders: list[Order] = field(default_factory=list)

    @property
    def total_weight(self) -> float:
        return sum(order.weight for order in self.orders)


@dataclass(slots=True)
class PartitionResult:
    clusters: list[Cluster]
    iterations: int
    converged: bool

    @property
    def centroids(self) -> list[GeoPoint]:
        return [cluster.centroid for cluster in self.clusters]

    def non_empty(self) -> list[Cluster]:
        return [cluster for cluster in self.clusters if cluster.orders]


def compute_k(order_count: int, max_orders_per_batch: int) -> int:
    """Number of clusters needed so clusters average at or under the order cap."""
    if max_orders_per_batch < 1:
        raise ValueError("max_orders_per_batch must be >= 1")
    return math.ceil(order_count / max_orders_per_batch)


class KMeansPartitioner:
    """Lloyd's k-means over haversine distance.

    Parameters
    ----------
    max_iterations:
        Hard cap on assignment/update rounds.
    tolerance_km:
        0 stops only when every centroid is exactly unchanged between rounds.
        A positive value treats movement up to that many kilometres as
        unchanged.
    seeder:
        Initial centroid strategy; defaults to the first k points.
    """

    def __init__(
        self,
        *,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        tolerance_km: float = 0.0,
        seeder: CentroidSeeder | None = None,
    ) -> None:
        if max_iterations < 1:
            raise ValueError("max_iterations must be >= 1")
        if tolerance_km < 0:
            raise ValueError("tolerance_km must be >= 0")
        self.max_iterations = max_iterations
        self.tolerance_km = tolerance_km
        self.seeder = seeder or FirstPointsSeeder()

    def _moved(self, old: GeoPoint, new: GeoPoint) -> bool:
        if self.tolerance_km == 0:
            return old != new
        return distance(old, new) > self.tolerance_km

    @staticmethod
    def _nearest(point: GeoPoint, centroids: Sequence[GeoPoint]) -> int:
        best_index = 0
        best_distance = math.inf
        for index, centroid in enumerate(centroids):
            d = distance(point, centroid)
            if d < best_distance:
                best_distance = d
                best_index = index
        return best_index

    def partition(self, orders: Sequence[Order], k: int) -> PartitionResult:
        if k < 1:
            raise ValueError("k must be >= 1")
        if not orders:
            return PartitionResult(clusters=[], iterations=0, converged=True)

        points: list[GeoPoint] = []
        for order in orders:
            if order.location is None:
                raise ValueError(f"Order '{order.order_id}' has no resolved location")
            points.append(order.location)

        k = min(k, len(points))
        centroids = self.seeder.seed(points, k)

        clusters: list[list[Order]] = []
        iterations = 0
        converged = False
        while iterations < self.max_iterations:
            clusters = [[] for _ in range(k)]
            for order, point in zip(orders, points):
                clusters[self._nearest(point, centroids)].append(order)

            changed = False
            for index, members in enumerate(clusters):
                if not members:
                    continue
                updated = mean_point([member.location for member in members])
                if self._moved(centroids[index], updated):
                    changed = True
                centroids[index] = updated
            iterations += 1
            if not changed:
                converged = True
                break

        logger.debug(
            f"k-means finished: k={k}, iterations={iterations}, converged={converged}, "
            f"sizes={[len(members) for members in clusters]}"
        )
        return PartitionResult(
            clusters=[
                Cluster(index=index, centroid=centroids[index], orders=members)
                for index, members in enumerate(clusters)
            ],
            iterations=iterations,
            converged=converged,
        )
