"""API routes."""

from fastapi import APIRouter

from orderhub.api.routes import aggregators, mappings, aggregator_orders

api_router = APIRouter()

api_router.include_router(aggregators.router, prefix="/aggregators", tags=["aggregators"])
api_router.include_router(mappings.router, tags=["mappings"])
api_router.include_router(aggregator_orders.router, prefix="/aggregator-orders", tags=["aggregator-orders"])
