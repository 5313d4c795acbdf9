"""Catalog Mapping Store - keyed access over item and category mappings.

Plain data access. Callers own the transaction: nothing here commits.
Inserts run inside a savepoint so that a uniqueness violation (two
writers racing on the same external id) surfaces as ``ConflictingMapping``
without poisoning the caller's outer transaction.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from orderhub.core.errors import ConflictingMapping
from orderhub.models.aggregator import AggregatorCategoryMapping, AggregatorItemMapping

logger = logging.getLogger(__name__)


class CatalogMappingStore:
    """Lookups and writes for ``AggregatorItemMapping`` / ``AggregatorCategoryMapping``."""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Item mappings
    # ------------------------------------------------------------------

    def get_item_mapping(self, mapping_id: int) -> Optional[AggregatorItemMapping]:
        return self.db.get(AggregatorItemMapping, mapping_id)

    def find_item_mapping(
        self, aggregator_id: int, external_item_id: str
    ) -> Optional[AggregatorItemMapping]:
        return self.db.query(AggregatorItemMapping).filter(
            AggregatorItemMapping.aggregator_id == aggregator_id,
            AggregatorItemMapping.external_item_id == external_item_id,
        ).first()

    def active_item_mappings(
        self, aggregator_id: int, external_item_ids: Iterable[str]
    ) -> Dict[str, AggregatorItemMapping]:
        """Batch point lookup of active mappings, keyed by external item id."""
        ids = set(external_item_ids)
        if not ids:
            return {}
        rows = self.db.query(AggregatorItemMapping).filter(
            AggregatorItemMapping.aggregator_id == aggregator_id,
            AggregatorItemMapping.external_item_id.in_(ids),
            AggregatorItemMapping.is_active == True,  # noqa: E712
        ).all()
        return {row.external_item_id: row for row in rows}

    def list_item_mappings(self, aggregator_id: int) -> List[AggregatorItemMapping]:
        return self.db.query(AggregatorItemMapping).filter(
            AggregatorItemMapping.aggregator_id == aggregator_id
        ).order_by(AggregatorItemMapping.external_item_name).all()

    def list_item_mappings_by_store(self, store_id: int) -> List[AggregatorItemMapping]:
        return self.db.query(AggregatorItemMapping).filter(
            AggregatorItemMapping.store_id == store_id
        ).order_by(AggregatorItemMapping.aggregator_id, AggregatorItemMapping.external_item_name).all()

    def unlinked_item_mappings(self, aggregator_id: int) -> List[AggregatorItemMapping]:
        """Mappings that exist but do not point at a POS item yet."""
        return self.db.query(AggregatorItemMapping).filter(
            AggregatorItemMapping.aggregator_id == aggregator_id,
            AggregatorItemMapping.pos_item_id.is_(None),
        ).order_by(AggregatorItemMapping.id).all()

    def count_item_mappings(self, aggregator_id: int, linked: Optional[bool] = None) -> int:
        query = self.db.query(func.count(AggregatorItemMapping.id)).filter(
            AggregatorItemMapping.aggregator_id == aggregator_id
        )
        if linked is True:
            query = query.filter(AggregatorItemMapping.pos_item_id.isnot(None))
        elif linked is False:
            query = query.filter(AggregatorItemMapping.pos_item_id.is_(None))
        return query.scalar() or 0

    def insert_item_mapping(self, **fields: Any) -> AggregatorItemMapping:
        """Insert a mapping, raising ``ConflictingMapping`` on a duplicate key."""
        aggregator_id = fields["aggregator_id"]
        external_item_id = fields["external_item_id"]
        if self.find_item_mapping(aggregator_id, external_item_id) is not None:
            raise ConflictingMapping("Mapping for this aggregator item already exists")

        mapping = AggregatorItemMapping(**fields)
        try:
            with self.db.begin_nested():
                self.db.add(mapping)
                self.db.flush()
        except IntegrityError as e:
            logger.info(
                f"Concurrent insert of item mapping {aggregator_id}/{external_item_id}: {e.orig}"
            )
            raise ConflictingMapping("Mapping for this aggregator item already exists") from e
        return mapping

    def insert_item_mapping_if_absent(self, **fields: Any) -> bool:
        """Insert unless the external id is already mapped. Returns True if inserted."""
        try:
            self.insert_item_mapping(**fields)
        except ConflictingMapping:
            return False
        return True

    def patch_item_mapping(
        self, mapping: AggregatorItemMapping, changes: Dict[str, Any]
    ) -> AggregatorItemMapping:
        for key, value in changes.items():
            setattr(mapping, key, value)
        self.db.flush()
        return mapping

    def delete_item_mapping(self, mapping: AggregatorItemMapping) -> None:
        self.db.delete(mapping)
        self.db.flush()

    # ------------------------------------------------------------------
    # Category mappings
    # ------------------------------------------------------------------

    def get_category_mapping(self, mapping_id: int) -> Optional[AggregatorCategoryMapping]:
        return self.db.get(AggregatorCategoryMapping, mapping_id)

    def find_category_mapping(
        self, aggregator_id: int, external_category_id: str
    ) -> Optional[AggregatorCategoryMapping]:
        return self.db.query(AggregatorCategoryMapping).filter(
            AggregatorCategoryMapping.aggregator_id == aggregator_id,
            AggregatorCategoryMapping.external_category_id == external_category_id,
        ).first()

    def find_category_for_label(
        self, aggregator_id: int, label: str
    ) -> Optional[AggregatorCategoryMapping]:
        """Active category mapping whose external id or name equals *label* (case-insensitive)."""
        needle = label.strip().lower()
        if not needle:
            return None
        return self.db.query(AggregatorCategoryMapping).filter(
            AggregatorCategoryMapping.aggregator_id == aggregator_id,
            AggregatorCategoryMapping.is_active == True,  # noqa: E712
            (func.lower(AggregatorCategoryMapping.external_category_id) == needle)
            | (func.lower(AggregatorCategoryMapping.external_category_name) == needle),
        ).order_by(AggregatorCategoryMapping.id).first()

    def list_category_mappings(self, aggregator_id: int) -> List[AggregatorCategoryMapping]:
        return self.db.query(AggregatorCategoryMapping).filter(
            AggregatorCategoryMapping.aggregator_id == aggregator_id
        ).order_by(AggregatorCategoryMapping.external_category_name).all()

    def list_category_mappings_by_store(self, store_id: int) -> List[AggregatorCategoryMapping]:
        return self.db.query(AggregatorCategoryMapping).filter(
            AggregatorCategoryMapping.store_id == store_id
        ).order_by(
            AggregatorCategoryMapping.aggregator_id, AggregatorCategoryMapping.external_category_name
        ).all()

    def count_category_mappings(self, aggregator_id: int, linked: Optional[bool] = None) -> int:
        query = self.db.query(func.count(AggregatorCategoryMapping.id)).filter(
            AggregatorCategoryMapping.aggregator_id == aggregator_id
        )
        if linked is True:
            query = query.filter(AggregatorCategoryMapping.counter_id.isnot(None))
        elif linked is False:
            query = query.filter(AggregatorCategoryMapping.counter_id.is_(None))
        return query.scalar() or 0

    def insert_category_mapping(self, **fields: Any) -> AggregatorCategoryMapping:
        aggregator_id = fields["aggregator_id"]
        external_category_id = fields["external_category_id"]
        if self.find_category_mapping(aggregator_id, external_category_id) is not None:
            raise ConflictingMapping("Mapping for this aggregator category already exists")

        mapping = AggregatorCategoryMapping(**fields)
        try:
            with self.db.begin_nested():
                self.db.add(mapping)
                self.db.flush()
        except IntegrityError as e:
            logger.info(
                f"Concurrent insert of category mapping {aggregator_id}/{external_category_id}: {e.orig}"
            )
            raise ConflictingMapping("Mapping for this aggregator category already exists") from e
        return mapping

    def insert_category_mapping_if_absent(self, **fields: Any) -> bool:
        try:
            self.insert_category_mapping(**fields)
        except ConflictingMapping:
            return False
        return True

    def patch_category_mapping(
        self, mapping: AggregatorCategoryMapping, changes: Dict[str, Any]
    ) -> AggregatorCategoryMapping:
        for key, value in changes.items():
            setattr(mapping, key, value)
        self.db.flush()
        return mapping

    def delete_category_mapping(self, mapping: AggregatorCategoryMapping) -> None:
        self.db.delete(mapping)
        self.db.flush()
