"""Catalog mapping management: create, import, edit and delete mappings."""

import logging
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from orderhub.core.errors import NotFound
from orderhub.models.aggregator import (
    Aggregator, AggregatorCategoryMapping, AggregatorItemMapping, MappingKind,
)
from orderhub.schemas.mapping import (
    BulkCreateResult,
    CategoryMappingBulkCreate,
    CategoryMappingCreate,
    CategoryMappingUpdate,
    ItemMappingBase,
    ItemMappingBulkCreate,
    ItemMappingCreate,
    ItemMappingUpdate,
)
from orderhub.services.catalog import check_pos_link, get_counter
from orderhub.services.mapping_store import CatalogMappingStore

logger = logging.getLogger(__name__)

# Columns a partial update may not clear
NOT_NULL_FIELDS = {"is_active", "mapping_kind"}


def _mapping_kind(entry: ItemMappingBase) -> MappingKind:
    if "mapping_kind" in entry.model_fields_set:
        return entry.mapping_kind
    return MappingKind.VARIATION if entry.pos_variation_id is not None else MappingKind.ITEM


class MappingService:
    """Operator-facing mapping operations. Each public method is one transaction."""

    def __init__(self, db: Session):
        self.db = db
        self.store = CatalogMappingStore(db)

    def _get_aggregator(self, aggregator_id: int) -> Aggregator:
        aggregator = self.db.get(Aggregator, aggregator_id)
        if not aggregator:
            raise NotFound("Aggregator", aggregator_id)
        return aggregator

    # Item mappings

    def list_item_mappings(self, aggregator_id: int) -> List[AggregatorItemMapping]:
        self._get_aggregator(aggregator_id)
        return self.store.list_item_mappings(aggregator_id)

    def list_item_mappings_by_store(self, store_id: int) -> List[AggregatorItemMapping]:
        return self.store.list_item_mappings_by_store(store_id)

    def get_item_mapping(self, mapping_id: int) -> AggregatorItemMapping:
        mapping = self.store.get_item_mapping(mapping_id)
        if not mapping:
            raise NotFound("Item mapping", mapping_id)
        return mapping

    def _item_fields(self, aggregator: Aggregator, entry: ItemMappingBase) -> Dict[str, Any]:
        check_pos_link(self.db, aggregator.store_id, entry.pos_item_id, entry.pos_variation_id)
        return {
            "aggregator_id": aggregator.id,
            "store_id": aggregator.store_id,
            "external_item_id": entry.external_item_id.strip(),
            "external_item_name": entry.external_item_name.strip(),
            "external_category": entry.external_category,
            "pos_item_id": entry.pos_item_id,
            "pos_variation_id": entry.pos_variation_id,
            "mapping_kind": _mapping_kind(entry),
        }

    def create_item_mapping(self, data: ItemMappingCreate) -> AggregatorItemMapping:
        aggregator = self._get_aggregator(data.aggregator_id)
        try:
            mapping = self.store.insert_item_mapping(
                **self._item_fields(aggregator, data), is_active=data.is_active
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(mapping)
        logger.info(
            f"Created item mapping {mapping.id} for aggregator {aggregator.id}: "
            f"{mapping.external_item_id} -> {mapping.pos_item_id}"
        )
        return mapping

    def bulk_create_item_mappings(self, data: ItemMappingBulkCreate) -> BulkCreateResult:
        """Insert-if-absent for every entry; existing external ids are skipped."""
        aggregator = self._get_aggregator(data.aggregator_id)
        created = skipped = 0
        try:
            for entry in data.items:
                if self.store.insert_item_mapping_if_absent(**self._item_fields(aggregator, entry)):
                    created += 1
                else:
                    skipped += 1
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(
            f"Bulk item mapping import for aggregator {aggregator.id}: {created} created, {skipped} skipped"
        )
        return BulkCreateResult(created=created, skipped=skipped)

    def update_item_mapping(self, mapping_id: int, data: ItemMappingUpdate) -> AggregatorItemMapping:
        mapping = self.get_item_mapping(mapping_id)
        changes = data.model_dump(exclude_unset=True)
        changes = {k: v for k, v in changes.items() if v is not None or k not in NOT_NULL_FIELDS}

        pos_item_id = changes.get("pos_item_id", mapping.pos_item_id)
        if "pos_variation_id" in changes:
            pos_variation_id = changes["pos_variation_id"]
        elif pos_item_id != mapping.pos_item_id:
            # A variation never outlives a change of its item
            pos_variation_id = None
            changes["pos_variation_id"] = None
        else:
            pos_variation_id = mapping.pos_variation_id

        if "pos_item_id" in changes or "pos_variation_id" in changes:
            check_pos_link(self.db, mapping.store_id, pos_item_id, pos_variation_id)
            if "mapping_kind" not in changes:
                changes["mapping_kind"] = (
                    MappingKind.VARIATION if pos_variation_id is not None else MappingKind.ITEM
                )

        try:
            self.store.patch_item_mapping(mapping, changes)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(mapping)
        return mapping

    def delete_item_mapping(self, mapping_id: int) -> None:
        mapping = self.get_item_mapping(mapping_id)
        try:
            self.store.delete_item_mapping(mapping)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"Deleted item mapping {mapping_id}")

    # Category mappings

    def list_category_mappings(self, aggregator_id: int) -> List[AggregatorCategoryMapping]:
        self._get_aggregator(aggregator_id)
        return self.store.list_category_mappings(aggregator_id)

    def list_category_mappings_by_store(self, store_id: int) -> List[AggregatorCategoryMapping]:
        return self.store.list_category_mappings_by_store(store_id)

    def get_category_mapping(self, mapping_id: int) -> AggregatorCategoryMapping:
        mapping = self.store.get_category_mapping(mapping_id)
        if not mapping:
            raise NotFound("Category mapping", mapping_id)
        return mapping

    def _category_fields(self, aggregator: Aggregator, entry) -> Dict[str, Any]:
        if entry.counter_id is not None:
            get_counter(self.db, aggregator.store_id, entry.counter_id)
        return {
            "aggregator_id": aggregator.id,
            "store_id": aggregator.store_id,
            "external_category_id": entry.external_category_id.strip(),
            "external_category_name": entry.external_category_name.strip(),
            "counter_id": entry.counter_id,
        }

    def create_category_mapping(self, data: CategoryMappingCreate) -> AggregatorCategoryMapping:
        aggregator = self._get_aggregator(data.aggregator_id)
        try:
            mapping = self.store.insert_category_mapping(
                **self._category_fields(aggregator, data), is_active=data.is_active
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(mapping)
        return mapping

    def bulk_create_category_mappings(self, data: CategoryMappingBulkCreate) -> BulkCreateResult:
        aggregator = self._get_aggregator(data.aggregator_id)
        created = skipped = 0
        try:
            for entry in data.categories:
                if self.store.insert_category_mapping_if_absent(**self._category_fields(aggregator, entry)):
                    created += 1
                else:
                    skipped += 1
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(
            f"Bulk category mapping import for aggregator {aggregator.id}: {created} created, {skipped} skipped"
        )
        return BulkCreateResult(created=created, skipped=skipped)

    def update_category_mapping(
        self, mapping_id: int, data: CategoryMappingUpdate
    ) -> AggregatorCategoryMapping:
        mapping = self.get_category_mapping(mapping_id)
        changes = data.model_dump(exclude_unset=True)
        changes = {k: v for k, v in changes.items() if v is not None or k not in NOT_NULL_FIELDS}
        if changes.get("counter_id") is not None:
            get_counter(self.db, mapping.store_id, changes["counter_id"])
        try:
            self.store.patch_category_mapping(mapping, changes)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(mapping)
        return mapping

    def delete_category_mapping(self, mapping_id: int) -> None:
        mapping = self.get_category_mapping(mapping_id)
        try:
            self.store.delete_category_mapping(mapping)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"Deleted category mapping {mapping_id}")
