"""Utilities to serialize batch generation runs into JSON/CSV artifacts."""

from __future__ import annotations

import csv
import io
from typing import Mapping

from ...models.domain import Order
from ..batching.service import GenerationReport


def generation_report_to_json(report: GenerationReport) -> dict:
    summary = report.summary()
    summary["batches"] = [
        {
            "batch_id": batch.batch_id,
            "order_ids": list(batch.order_ids),
            "order_count": batch.order_count,
            "total_weight": batch.total_weight,
        }
        for batch in report.batches
    ]
    return summary


def generation_report_to_csv(report: GenerationReport, orders: Mapping[str, Order]) -> str:
    """One row per order, keyed by the batch it landed in."""
    buffer = io.StringIO()
    fieldnames = ["batch_id", "order_id", "postal_code", "weight", "address"]
    writer = csv.DictWriter(buffer, fieldnames=fieldnames)
    writer.writeheader()
    for batch in report.batches:
        for order_id in batch.order_ids:
            order = orders.get(order_id)
            writer.writerow(
                {
                    "batch_id": batch.batch_id,
                    "order_id": order_id,
                    "postal_code": order.postal_code if order else "",
                    "weight": order.weight if order else "",
                    "address": order.address if order else "",
                }
            )
    return buffer.getvalue()
