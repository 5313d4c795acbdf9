"""Catalog mapping schemas (item and category mappings)."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from orderhub.models.aggregator import MappingKind


# Item mappings

class ItemMappingBase(BaseModel):
    external_item_id: str = Field(..., min_length=1, max_length=200)
    external_item_name: str = Field(..., min_length=1, max_length=300)
    external_category: Optional[str] = Field(None, max_length=200)
    pos_item_id: Optional[int] = None
    pos_variation_id: Optional[int] = None
    mapping_kind: MappingKind = MappingKind.ITEM


class ItemMappingCreate(ItemMappingBase):
    aggregator_id: int
    is_active: bool = True


class ItemMappingBulkCreate(BaseModel):
    aggregator_id: int
    items: List[ItemMappingBase]


class ItemMappingUpdate(BaseModel):
    """Partial update; only fields present in the request are applied."""
    pos_item_id: Optional[int] = None
    pos_variation_id: Optional[int] = None
    mapping_kind: Optional[MappingKind] = None
    external_category: Optional[str] = None
    is_active: Optional[bool] = None


class ItemMappingResponse(ItemMappingBase):
    id: int
    aggregator_id: int
    store_id: int
    is_active: bool
    pos_item_name: Optional[str] = None
    pos_variation_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# Category mappings

class CategoryMappingBase(BaseModel):
    external_category_id: str = Field(..., min_length=1, max_length=200)
    external_category_name: str = Field(..., min_length=1, max_length=200)
    counter_id: Optional[int] = None


class CategoryMappingCreate(CategoryMappingBase):
    aggregator_id: int
    is_active: bool = True


class CategoryMappingBulkCreate(BaseModel):
    aggregator_id: int
    categories: List[CategoryMappingBase]


class CategoryMappingUpdate(BaseModel):
    counter_id: Optional[int] = None
    is_active: Optional[bool] = None


class CategoryMappingResponse(CategoryMappingBase):
    id: int
    aggregator_id: int
    store_id: int
    is_active: bool
    counter_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# Results

class BulkCreateResult(BaseModel):
    created: int
    skipped: int


class AutoMapResult(BaseModel):
    mapped_count: int
    total_unmapped: int
