"""Aggregator order routes - review queue, acceptance and operator actions."""

from typing import List, Optional

from fastapi import APIRouter, Query, Request

from orderhub.core.rate_limit import limiter
from orderhub.core.responses import list_response
from orderhub.db.session import DbSession
from orderhub.models.aggregator import AggregatorOrderStatus
from orderhub.schemas.aggregator_order import (
    AcceptOrderResponse,
    AggregatorOrderResponse,
    FailOrderRequest,
    RejectOrderRequest,
    RemapLineRequest,
)
from orderhub.services.acceptance_service import AcceptanceEngine
from orderhub.services.order_lifecycle import AggregatorOrderService

router = APIRouter()


def _orders(orders: List) -> dict:
    return list_response([AggregatorOrderResponse.model_validate(o).model_dump(mode="json") for o in orders])


@router.get("/")
@limiter.limit("60/minute")
def list_aggregator_orders(
    request: Request,
    db: DbSession,
    store_id: int,
    status: Optional[AggregatorOrderStatus] = None,
):
    """List a store's aggregator orders, newest first, optionally by status."""
    return _orders(AggregatorOrderService(db).list_by_status(store_id, status))


@router.get("/pending")
@limiter.limit("60/minute")
def list_pending_orders(request: Request, db: DbSession, store_id: int):
    """Orders waiting for an operator decision."""
    return _orders(AggregatorOrderService(db).list_pending(store_id))


@router.get("/recent")
@limiter.limit("60/minute")
def list_recent_orders(
    request: Request,
    db: DbSession,
    store_id: int,
    hours: Optional[int] = Query(None, ge=1, le=720),
):
    return _orders(AggregatorOrderService(db).list_recent(store_id, hours))


@router.get("/{order_id}", response_model=AggregatorOrderResponse)
@limiter.limit("60/minute")
def get_aggregator_order(request: Request, db: DbSession, order_id: int):
    """Order with its lines and the POS item each line resolves to."""
    return AggregatorOrderService(db).get_order(order_id)


@router.post("/{order_id}/accept", response_model=AcceptOrderResponse)
@limiter.limit("30/minute")
def accept_aggregator_order(request: Request, db: DbSession, order_id: int):
    """Create the POS order for a fully mapped pending order."""
    return AcceptanceEngine(db).accept(order_id)


@router.post("/{order_id}/reject", response_model=AggregatorOrderResponse)
@limiter.limit("30/minute")
def reject_aggregator_order(
    request: Request,
    db: DbSession,
    order_id: int,
    data: Optional[RejectOrderRequest] = None,
):
    return AggregatorOrderService(db).reject(order_id, data.reason if data else None)


@router.post("/{order_id}/acknowledge", response_model=AggregatorOrderResponse)
@limiter.limit("30/minute")
def acknowledge_aggregator_order(request: Request, db: DbSession, order_id: int):
    """Mark the order accepted with the platform without creating a POS order."""
    return AggregatorOrderService(db).acknowledge(order_id)


@router.post("/{order_id}/fail", response_model=AggregatorOrderResponse)
@limiter.limit("30/minute")
def fail_aggregator_order(request: Request, db: DbSession, order_id: int, data: FailOrderRequest):
    return AggregatorOrderService(db).mark_failed(order_id, data.reason)


@router.post("/{order_id}/retry", response_model=AggregatorOrderResponse)
@limiter.limit("30/minute")
def retry_aggregator_order(request: Request, db: DbSession, order_id: int):
    """Send a failed order back to the pending queue."""
    return AggregatorOrderService(db).retry(order_id)


@router.put("/{order_id}/items/{line_index}", response_model=AggregatorOrderResponse)
@limiter.limit("30/minute")
def remap_order_line(
    request: Request,
    db: DbSession,
    order_id: int,
    line_index: int,
    data: RemapLineRequest,
):
    """Manually point one line of a pending order at a POS item."""
    return AggregatorOrderService(db).remap_line(
        order_id, line_index, data.pos_item_id, data.pos_variation_id
    )
