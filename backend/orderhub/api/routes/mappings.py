"""Catalog mapping routes - item and category mappings per aggregator."""

from fastapi import APIRouter, Request

from orderhub.core.rate_limit import limiter
from orderhub.core.responses import list_response
from orderhub.db.session import DbSession
from orderhub.schemas.mapping import (
    AutoMapResult,
    BulkCreateResult,
    CategoryMappingBulkCreate,
    CategoryMappingCreate,
    CategoryMappingResponse,
    CategoryMappingUpdate,
    ItemMappingBulkCreate,
    ItemMappingCreate,
    ItemMappingResponse,
    ItemMappingUpdate,
)
from orderhub.services.mapping_resolver import MappingResolver
from orderhub.services.mapping_service import MappingService

router = APIRouter()


def _items(mappings) -> dict:
    return list_response([ItemMappingResponse.model_validate(m).model_dump(mode="json") for m in mappings])


def _categories(mappings) -> dict:
    return list_response([CategoryMappingResponse.model_validate(m).model_dump(mode="json") for m in mappings])


# Item mappings

@router.get("/aggregators/{aggregator_id}/item-mappings")
@limiter.limit("60/minute")
def list_item_mappings(request: Request, db: DbSession, aggregator_id: int):
    """List an aggregator's item mappings with their POS item and variation."""
    return _items(MappingService(db).list_item_mappings(aggregator_id))


@router.get("/stores/{store_id}/item-mappings")
@limiter.limit("60/minute")
def list_store_item_mappings(request: Request, db: DbSession, store_id: int):
    return _items(MappingService(db).list_item_mappings_by_store(store_id))


@router.post("/item-mappings", response_model=ItemMappingResponse)
@limiter.limit("30/minute")
def create_item_mapping(request: Request, db: DbSession, data: ItemMappingCreate):
    return MappingService(db).create_item_mapping(data)


@router.post("/item-mappings/bulk", response_model=BulkCreateResult)
@limiter.limit("10/minute")
def bulk_create_item_mappings(request: Request, db: DbSession, data: ItemMappingBulkCreate):
    """Import mappings; external ids that already have a mapping are skipped."""
    return MappingService(db).bulk_create_item_mappings(data)


@router.put("/item-mappings/{mapping_id}", response_model=ItemMappingResponse)
@limiter.limit("30/minute")
def update_item_mapping(request: Request, db: DbSession, mapping_id: int, data: ItemMappingUpdate):
    return MappingService(db).update_item_mapping(mapping_id, data)


@router.delete("/item-mappings/{mapping_id}")
@limiter.limit("30/minute")
def delete_item_mapping(request: Request, db: DbSession, mapping_id: int):
    MappingService(db).delete_item_mapping(mapping_id)
    return {"status": "deleted"}


@router.post("/aggregators/{aggregator_id}/auto-map", response_model=AutoMapResult)
@limiter.limit("10/minute")
def auto_map_items(request: Request, db: DbSession, aggregator_id: int):
    """Link unlinked item mappings to menu items by name."""
    return MappingResolver(db).auto_map_by_name(aggregator_id)


# Category mappings

@router.get("/aggregators/{aggregator_id}/category-mappings")
@limiter.limit("60/minute")
def list_category_mappings(request: Request, db: DbSession, aggregator_id: int):
    return _categories(MappingService(db).list_category_mappings(aggregator_id))


@router.get("/stores/{store_id}/category-mappings")
@limiter.limit("60/minute")
def list_store_category_mappings(request: Request, db: DbSession, store_id: int):
    return _categories(MappingService(db).list_category_mappings_by_store(store_id))


@router.post("/category-mappings", response_model=CategoryMappingResponse)
@limiter.limit("30/minute")
def create_category_mapping(request: Request, db: DbSession, data: CategoryMappingCreate):
    return MappingService(db).create_category_mapping(data)


@router.post("/category-mappings/bulk", response_model=BulkCreateResult)
@limiter.limit("10/minute")
def bulk_create_category_mappings(request: Request, db: DbSession, data: CategoryMappingBulkCreate):
    return MappingService(db).bulk_create_category_mappings(data)


@router.put("/category-mappings/{mapping_id}", response_model=CategoryMappingResponse)
@limiter.limit("30/minute")
def update_category_mapping(request: Request, db: DbSession, mapping_id: int, data: CategoryMappingUpdate):
    return MappingService(db).update_category_mapping(mapping_id, data)


@router.delete("/category-mappings/{mapping_id}")
@limiter.limit("30/minute")
def delete_category_mapping(request: Request, db: DbSession, mapping_id: int):
    MappingService(db).delete_category_mapping(mapping_id)
    return {"status": "deleted"}
