"""Aggregator configuration routes."""

from fastapi import APIRouter, HTTPException, Request

from orderhub.core.rate_limit import limiter
from orderhub.core.responses import list_response
from orderhub.db.session import DbSession
from orderhub.models.aggregator import Platform
from orderhub.schemas.aggregator import (
    AggregatorCreate, AggregatorResponse, AggregatorStats, AggregatorUpdate,
)
from orderhub.services.aggregator_service import AggregatorService

router = APIRouter()


@router.get("/")
@limiter.limit("60/minute")
def list_aggregators(request: Request, db: DbSession, store_id: int):
    """List a store's aggregator connections."""
    aggregators = AggregatorService(db).list_by_store(store_id)
    return list_response([AggregatorResponse.model_validate(a).model_dump(mode="json") for a in aggregators])


@router.get("/by-platform", response_model=AggregatorResponse)
@limiter.limit("60/minute")
def get_aggregator_by_platform(request: Request, db: DbSession, store_id: int, platform: Platform):
    """Get a store's aggregator for one platform."""
    aggregator = AggregatorService(db).get_by_platform(store_id, platform.value)
    if not aggregator:
        raise HTTPException(status_code=404, detail="Aggregator not found")
    return aggregator


@router.post("/", response_model=AggregatorResponse)
@limiter.limit("30/minute")
def create_aggregator(request: Request, db: DbSession, data: AggregatorCreate):
    """Create an aggregator connection (created disabled)."""
    return AggregatorService(db).create(data)


@router.get("/{aggregator_id}", response_model=AggregatorResponse)
@limiter.limit("60/minute")
def get_aggregator(request: Request, db: DbSession, aggregator_id: int):
    return AggregatorService(db).get(aggregator_id)


@router.put("/{aggregator_id}", response_model=AggregatorResponse)
@limiter.limit("30/minute")
def update_aggregator(request: Request, db: DbSession, aggregator_id: int, data: AggregatorUpdate):
    """Update credentials, webhook URL or status. Only fields sent are changed."""
    return AggregatorService(db).update(aggregator_id, data)


@router.post("/{aggregator_id}/toggle", response_model=AggregatorResponse)
@limiter.limit("30/minute")
def toggle_aggregator(request: Request, db: DbSession, aggregator_id: int):
    """Enable a disabled aggregator or disable an enabled one."""
    return AggregatorService(db).toggle_enabled(aggregator_id)


@router.post("/{aggregator_id}/sync", response_model=AggregatorResponse)
@limiter.limit("30/minute")
def mark_aggregator_synced(request: Request, db: DbSession, aggregator_id: int):
    """Record that the platform catalog was just synced."""
    return AggregatorService(db).touch_last_sync(aggregator_id)


@router.get("/{aggregator_id}/stats", response_model=AggregatorStats)
@limiter.limit("60/minute")
def get_aggregator_stats(request: Request, db: DbSession, aggregator_id: int):
    """Mapping coverage and today's order counts."""
    return AggregatorService(db).stats(aggregator_id)


@router.delete("/{aggregator_id}")
@limiter.limit("30/minute")
def delete_aggregator(request: Request, db: DbSession, aggregator_id: int):
    """Remove an aggregator together with its item and category mappings."""
    AggregatorService(db).remove(aggregator_id)
    return {"status": "deleted"}
