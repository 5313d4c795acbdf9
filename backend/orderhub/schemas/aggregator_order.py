"""Aggregator order schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from orderhub.models.aggregator import AggregatorOrderStatus, MappingStatus


class AggregatorOrderItemResponse(BaseModel):
    line_index: int
    external_item_id: str
    name: str
    quantity: int
    price: float
    external_category: Optional[str] = None
    pos_item_id: Optional[int] = None
    pos_variation_id: Optional[int] = None
    mapping_status: MappingStatus
    pos_item_name: Optional[str] = None
    pos_variation_name: Optional[str] = None

    model_config = {"from_attributes": True}


class AggregatorOrderResponse(BaseModel):
    id: int
    store_id: int
    aggregator_id: int
    platform: str
    external_order_id: str
    external_order_number: str
    status: AggregatorOrderStatus
    pos_order_id: Optional[int] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    delivery_address: Optional[str] = None
    subtotal: float
    tax: float
    delivery_fee: float
    discount: float
    total: float
    estimated_time: int
    error_message: Optional[str] = None
    unmapped_count: int = 0
    accepted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    items: List[AggregatorOrderItemResponse] = []

    model_config = {"from_attributes": True}


class RejectOrderRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class FailOrderRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)


class RemapLineRequest(BaseModel):
    pos_item_id: int
    pos_variation_id: Optional[int] = None


class AcceptOrderResponse(BaseModel):
    pos_order_id: int
    order_number: str
    token_number: int
    item_count: int
    skipped_lines: List[int] = []


class WebhookResponse(BaseModel):
    success: bool = True
    order_id: int
    is_duplicate: bool
