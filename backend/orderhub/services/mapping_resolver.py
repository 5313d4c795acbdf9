"""Mapping Resolver: classify incoming order lines against catalog mappings."""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence
import logging

from sqlalchemy.orm import Session

from orderhub.core.errors import NotFound
from orderhub.models.aggregator import Aggregator, MappingStatus
from orderhub.models.store import MenuItem
from orderhub.schemas.mapping import AutoMapResult
from orderhub.services.delivery.base import IncomingLine
from orderhub.services.mapping_store import CatalogMappingStore

logger = logging.getLogger(__name__)


class MatchMethod(str, Enum):
    """How an external item name was matched to a menu item."""
    EXACT = "exact"          # Case-insensitive equality
    CONTAINS = "contains"    # One name contains the other
    NOT_FOUND = "not_found"


@dataclass
class ResolvedLine:
    """An incoming line together with the outcome of its mapping lookup."""
    line_index: int
    line: IncomingLine
    mapping_status: MappingStatus
    pos_item_id: Optional[int] = None
    pos_variation_id: Optional[int] = None
    category: Optional[str] = None


@dataclass
class NameMatch:
    menu_item: Optional[MenuItem]
    method: MatchMethod


def _normalize_name(name: Optional[str]) -> str:
    return (name or "").strip().lower()


def match_menu_item(name: str, menu_items: Sequence[MenuItem]) -> NameMatch:
    """Find the menu item for an external name.

    Exact equality wins over containment; within a tier the first item in
    *menu_items* order wins. No further ranking is attempted.
    """
    needle = _normalize_name(name)
    if not needle:
        return NameMatch(None, MatchMethod.NOT_FOUND)

    candidates = [(item, _normalize_name(item.name)) for item in menu_items]
    candidates = [(item, item_name) for item, item_name in candidates if item_name]

    for item, item_name in candidates:
        if item_name == needle:
            return NameMatch(item, MatchMethod.EXACT)
    for item, item_name in candidates:
        if needle in item_name or item_name in needle:
            return NameMatch(item, MatchMethod.CONTAINS)
    return NameMatch(None, MatchMethod.NOT_FOUND)


class MappingResolver:
    """Resolve order lines to POS items and bulk-link mappings by name."""

    def __init__(self, db: Session):
        self.db = db
        self.store = CatalogMappingStore(db)

    def resolve_lines(self, aggregator_id: int, lines: Sequence[IncomingLine]) -> List[ResolvedLine]:
        """Label each line ``mapped`` or ``unmapped``.

        A line is mapped only when an active mapping exists for its external
        id and that mapping points at a POS item. Unmapped lines are kept
        as-is; they never block ingestion.
        """
        mappings = self.store.active_item_mappings(
            aggregator_id, (line.external_item_id for line in lines)
        )
        resolved = []
        for index, line in enumerate(lines):
            mapping = mappings.get(line.external_item_id)
            if mapping is not None and mapping.pos_item_id is not None:
                resolved.append(ResolvedLine(
                    line_index=index,
                    line=line,
                    mapping_status=MappingStatus.MAPPED,
                    pos_item_id=mapping.pos_item_id,
                    pos_variation_id=mapping.pos_variation_id,
                    category=line.category or mapping.external_category,
                ))
            else:
                resolved.append(ResolvedLine(
                    line_index=index,
                    line=line,
                    mapping_status=MappingStatus.UNMAPPED,
                    category=line.category or (mapping.external_category if mapping else None),
                ))
        return resolved

    def auto_map_by_name(self, aggregator_id: int) -> AutoMapResult:
        """Link every mapping without a POS item to a menu item with a matching name.

        Only mapping rows change; lines already copied into aggregator
        orders keep their status, so run this before accepting orders.
        """
        aggregator = self.db.get(Aggregator, aggregator_id)
        if not aggregator:
            raise NotFound("Aggregator", aggregator_id)

        unlinked = self.store.unlinked_item_mappings(aggregator_id)
        menu_items = self.db.query(MenuItem).filter(
            MenuItem.store_id == aggregator.store_id
        ).order_by(MenuItem.id).all()

        mapped_count = 0
        try:
            for mapping in unlinked:
                match = match_menu_item(mapping.external_item_name, menu_items)
                if match.menu_item is None:
                    continue
                self.store.patch_item_mapping(mapping, {"pos_item_id": match.menu_item.id})
                mapped_count += 1
                logger.debug(
                    f"Auto-mapped '{mapping.external_item_name}' -> '{match.menu_item.name}' ({match.method.value})"
                )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"Auto-map for aggregator {aggregator_id}: {mapped_count} of {len(unlinked)} unlinked mappings matched"
        )
        return AutoMapResult(mapped_count=mapped_count, total_unmapped=len(unlinked))
