"""API routes for batch generation and batch management."""

from __future__ import annotations

import logging
import threading
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from ...config import settings
from ...models.domain import GeoPoint
from ...persistence.filesystem import FileStorage
from ...persistence.stores import BatchNotFound, BatchStore, OrderStore, PersistenceFailure
from ...schemas.batches import (
    AssignDriverRequest,
    BatchDetailsModel,
    BatchGenerationRequest,
    BatchGenerationResponse,
    BatchModel,
    BatchStatsModel,
)
from ...services.batching import (
    BatchGenerator,
    KMeansPartitioner,
    assign_driver,
    check_and_update_batch_status,
    compute_batch_stats,
    get_seeder,
)
from ...services.batching.service import GenerationReport
from ...services.export.geojson import export_batches_to_geojson
from ...services.geocoding import GeocodeFailure, GeocodeResolver
from ...services.outputs.formatter import generation_report_to_csv, generation_report_to_json
from ..dependencies import get_batch_store, get_geocode_resolver, get_order_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/batches", tags=["batches"])

# Runs read PENDING orders and then flip them to ASSIGNED; two overlapping runs
# would place the same order twice.
_generation_lock = threading.Lock()


def _persist_outputs(
    report: GenerationReport,
    order_store: OrderStore,
    payload: BatchGenerationRequest,
) -> str:
    storage = FileStorage()
    run_dir = storage.make_run_directory(prefix="batches")
    summary = generation_report_to_json(report)
    if payload.requested_by:
        summary["author"] = payload.requested_by
    if payload.notes:
        summary["notes"] = payload.notes
    order_ids = [oid for batch in report.batches for oid in batch.order_ids]
    orders = {order.order_id: order for order in order_store.get_many(order_ids)}
    storage.write_json(run_dir / "summary.json", summary)
    storage.write_csv(run_dir / "batches.csv", generation_report_to_csv(report, orders))
    return str(run_dir)


@router.post("/generate", response_model=BatchGenerationResponse, status_code=status.HTTP_200_OK)
def generate_batches(
    payload: Optional[BatchGenerationRequest] = Body(default=None),
    order_store: OrderStore = Depends(get_order_store),
    batch_store: BatchStore = Depends(get_batch_store),
    resolver: GeocodeResolver = Depends(get_geocode_resolver),
) -> BatchGenerationResponse:
    """Group all PENDING orders into batches and mark them ASSIGNED."""
    payload = payload or BatchGenerationRequest()
    try:
        partitioner = KMeansPartitioner(
            max_iterations=settings.kmeans_max_iterations,
            tolerance_km=settings.kmeans_tolerance_km,
            seeder=get_seeder(payload.seeding or settings.kmeans_seeding),
        )
        generator = BatchGenerator(
            order_store,
            batch_store,
            resolver,
            max_orders_per_batch=payload.max_orders_per_batch,
            max_weight_per_batch=payload.max_weight_per_batch,
            partitioner=partitioner,
        )
        with _generation_lock:
            report = generator.generate()

        metadata = report.summary()
        if payload.persist and report.batches:
            try:
                metadata["output_dir"] = _persist_outputs(report, order_store, payload)
            except OSError as exc:
                logger.warning(f"Failed to write run outputs: {exc}")
    except GeocodeFailure as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": str(exc), "postal_code": exc.postal_code},
        ) from exc
    except PersistenceFailure as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return BatchGenerationResponse(
        message="Batches generated" if report.batches else "No pending orders",
        batches=[BatchModel.from_domain(batch) for batch in report.batches],
        metadata=metadata,
    )


@router.get("", response_model=List[BatchModel])
def list_batches(batch_store: BatchStore = Depends(get_batch_store)) -> List[BatchModel]:
    try:
        return [BatchModel.from_domain(batch) for batch in batch_store.list()]
    except PersistenceFailure as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


@router.get("/stats", response_model=BatchStatsModel)
def batch_stats(batch_store: BatchStore = Depends(get_batch_store)) -> BatchStatsModel:
    try:
        stats = compute_batch_stats(batch_store)
    except PersistenceFailure as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return BatchStatsModel(counts=stats.counts, total=stats.total, total_weight=stats.total_weight)


@router.get("/map")
def batches_map(
    order_store: OrderStore = Depends(get_order_store),
    batch_store: BatchStore = Depends(get_batch_store),
    resolver: GeocodeResolver = Depends(get_geocode_resolver),
) -> dict:
    """GeoJSON FeatureCollection of all batches and their orders."""
    try:
        batches = batch_store.list()
        order_ids = [oid for batch in batches for oid in batch.order_ids]
        orders = {order.order_id: order for order in order_store.get_many(order_ids)}
    except PersistenceFailure as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    locations: dict[str, GeoPoint] = {}
    for code in sorted({order.postal_code.strip() for order in orders.values()}):
        try:
            locations[code] = resolver.resolve(code)
        except GeocodeFailure as exc:
            logger.warning(f"Leaving postal code off the map: {exc}")
    return export_batches_to_geojson(batches, orders, locations)


@router.get("/assigned", response_model=List[BatchDetailsModel])
def list_driver_batches(
    driver_id: str = Query(..., min_length=1),
    order_store: OrderStore = Depends(get_order_store),
    batch_store: BatchStore = Depends(get_batch_store),
) -> List[BatchDetailsModel]:
    """Batches assigned to a driver, with their orders."""
    try:
        return [
            BatchDetailsModel.from_domain_with_orders(batch, order_store.get_many(batch.order_ids))
            for batch in batch_store.list(driver_id=driver_id.strip())
        ]
    except PersistenceFailure as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


@router.get("/{batch_id}/details", response_model=BatchDetailsModel)
def get_batch_details(
    batch_id: str,
    order_store: OrderStore = Depends(get_order_store),
    batch_store: BatchStore = Depends(get_batch_store),
) -> BatchDetailsModel:
    try:
        batch = batch_store.get(batch_id)
        return BatchDetailsModel.from_domain_with_orders(batch, order_store.get_many(batch.order_ids))
    except BatchNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except PersistenceFailure as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


@router.get("/{batch_id}", response_model=BatchModel)
def get_batch(batch_id: str, batch_store: BatchStore = Depends(get_batch_store)) -> BatchModel:
    try:
        return BatchModel.from_domain(batch_store.get(batch_id))
    except BatchNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.patch("/{batch_id}/assign", response_model=BatchModel)
def assign_batch_driver(
    batch_id: str,
    payload: AssignDriverRequest,
    batch_store: BatchStore = Depends(get_batch_store),
) -> BatchModel:
    try:
        return BatchModel.from_domain(assign_driver(batch_store, batch_id, payload.driver_id))
    except BatchNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except PersistenceFailure as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


@router.post("/{batch_id}/refresh-status", response_model=BatchModel)
def refresh_batch_status(
    batch_id: str,
    order_store: OrderStore = Depends(get_order_store),
    batch_store: BatchStore = Depends(get_batch_store),
) -> BatchModel:
    """Mark the batch COMPLETED if every order in it has been delivered."""
    try:
        return BatchModel.from_domain(check_and_update_batch_status(batch_store, order_store, batch_id))
    except BatchNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except PersistenceFailure as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
