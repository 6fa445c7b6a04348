"""Centroid initialisation strategies for the k-means partitioner."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

import numpy as np
from sklearn.cluster import kmeans_plusplus

from ...models.domain import GeoPoint


class CentroidSeeder(ABC):
    """Contract for picking the k starting centroids."""

    name: str = "seeder"

    @abstractmethod
    def seed(self, points: Sequence[GeoPoint], k: int) -> list[GeoPoint]:
        raise NotImplementedError


class FirstPointsSeeder(CentroidSeeder):
    """Use the first ``k`` points in input order.

    Deterministic for a given ordering; may pick poor seeds when the input is
    sorted geographically.
    """

    name = "first_points"

    def seed(self, points: Sequence[GeoPoint], k: int) -> list[GeoPoint]:
        if k > len(points):
            raise ValueError(f"cannot seed {k} centroids from {len(points)} points")
        return list(points[:k])


class KMeansPlusPlusSeeder(CentroidSeeder):
    """k-means++ seeding via scikit-learn with a fixed random state."""

    name = "kmeans++"

    def __init__(self, random_state: int = 42) -> None:
        self.random_state = random_state

    def seed(self, points: Sequence[GeoPoint], k: int) -> list[GeoPoint]:
        if k > len(points):
            raise ValueError(f"cannot seed {k} centroids from {len(points)} points")
        coordinates = np.array([[p.latitude, p.longitude] for p in points], dtype=float)
        _, indices = kmeans_plusplus(coordinates, n_clusters=k, random_state=self.random_state)
        return [points[int(i)] for i in indices]


def get_seeder(name: str) -> CentroidSeeder:
    match name:
        case "first_points":
            return FirstPointsSeeder()
        case "kmeans++":
            return KMeansPlusPlusSeeder()
        case _:
            raise ValueError(f"Unknown seeding strategy '{name}'.")
