"""Batch generation: k-means partitioning and capacity splitting.

Public API:
- BatchGenerator
- KMeansPartitioner
- split_cluster
"""

from .kmeans import Cluster, KMeansPartitioner, PartitionResult, compute_k
from .lifecycle import (
    BatchStats,
    DeliveryResult,
    assign_driver,
    check_and_update_batch_status,
    compute_batch_stats,
    mark_order_delivered,
)
from .seeding import CentroidSeeder, FirstPointsSeeder, KMeansPlusPlusSeeder, get_seeder
from .service import BatchGenerator, GenerationPlan, GenerationReport
from .splitter import PlannedBatch, split_cluster

__all__ = [
    "BatchGenerator",
    "BatchStats",
    "CentroidSeeder",
    "Cluster",
    "DeliveryResult",
    "FirstPointsSeeder",
    "GenerationPlan",
    "GenerationReport",
    "KMeansPartitioner",
    "KMeansPlusPlusSeeder",
    "PartitionResult",
    "PlannedBatch",
    "assign_driver",
    "check_and_update_batch_status",
    "compute_batch_stats",
    "compute_k",
    "get_seeder",
    "mark_order_delivered",
    "split_cluster",
]
