"""Aggregator configuration schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from orderhub.models.aggregator import AggregatorStatus, Platform


class AggregatorCredentials(BaseModel):
    """Credential bundle; on update only the fields sent are replaced."""
    api_key: Optional[str] = None
    api_secret: Optional[str] = None
    restaurant_id: Optional[str] = Field(None, max_length=200)
    webhook_secret: Optional[str] = Field(None, max_length=200)


class AggregatorCreate(BaseModel):
    store_id: int
    platform: Platform
    credentials: Optional[AggregatorCredentials] = None
    webhook_url: Optional[str] = None


class AggregatorUpdate(BaseModel):
    credentials: Optional[AggregatorCredentials] = None
    webhook_url: Optional[str] = None
    status: Optional[AggregatorStatus] = None


class AggregatorResponse(BaseModel):
    id: int
    store_id: int
    platform: str
    is_enabled: bool
    status: AggregatorStatus
    restaurant_id: Optional[str] = None
    webhook_url: Optional[str] = None
    has_webhook_secret: bool = False
    last_sync_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AggregatorStats(BaseModel):
    total_items: int
    mapped_items: int
    unmapped_items: int
    total_categories: int
    mapped_categories: int
    unmapped_categories: int
    orders_today: int
    pending_orders: int
