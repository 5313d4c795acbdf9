"""Order ingestion: deduplicate, resolve mappings and record aggregator orders.

Webhook senders deliver at least once, so the same order routinely arrives
more than once. The (aggregator_id, external_order_id) unique constraint is
the source of truth: a lookup short-circuits the common redelivery, and an
insert that loses a race against a concurrent delivery is caught and
reported as the duplicate it is.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from orderhub.core.errors import InvalidState
from orderhub.models.aggregator import (
    Aggregator, AggregatorOrder, AggregatorOrderItem, AggregatorOrderStatus, MappingStatus,
)
from orderhub.services.delivery.base import IncomingOrder
from orderhub.services.mapping_resolver import MappingResolver

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    order_id: int
    is_duplicate: bool
    unmapped_count: int = 0


class Deduplicator:
    """Point lookup of an already-recorded aggregator order."""

    def __init__(self, db: Session):
        self.db = db

    def find_existing(self, aggregator_id: int, external_order_id: str) -> Optional[AggregatorOrder]:
        return self.db.query(AggregatorOrder).filter(
            AggregatorOrder.aggregator_id == aggregator_id,
            AggregatorOrder.external_order_id == external_order_id,
        ).first()


class OrderIngestionService:
    """Turns a normalized ``IncomingOrder`` into a pending ``AggregatorOrder``."""

    def __init__(self, db: Session):
        self.db = db
        self.dedup = Deduplicator(db)
        self.resolver = MappingResolver(db)

    def ingest(self, aggregator: Aggregator, incoming: IncomingOrder) -> IngestResult:
        """Record *incoming* for *aggregator*, or return the existing record.

        Never fails because lines are unmapped; those are stored with
        ``mapping_status = unmapped`` and surfaced through the order queries.
        """
        if not aggregator.is_enabled:
            raise InvalidState(f"Aggregator {aggregator.id} ({aggregator.platform}) is disabled")

        existing = self.dedup.find_existing(aggregator.id, incoming.external_order_id)
        if existing is not None:
            return self._duplicate(aggregator, existing)

        resolved = self.resolver.resolve_lines(aggregator.id, incoming.lines)
        order = AggregatorOrder(
            store_id=aggregator.store_id,
            aggregator_id=aggregator.id,
            platform=aggregator.platform,
            external_order_id=incoming.external_order_id,
            external_order_number=incoming.external_order_number,
            status=AggregatorOrderStatus.PENDING,
            customer_name=incoming.customer_name,
            customer_phone=incoming.customer_phone,
            delivery_address=incoming.delivery_address,
            subtotal=incoming.subtotal,
            tax=incoming.tax,
            delivery_fee=incoming.delivery_fee,
            discount=incoming.discount,
            total=incoming.total,
            estimated_time=incoming.estimated_time,
            raw_payload=incoming.raw_payload,
        )
        order.items = [
            AggregatorOrderItem(
                line_index=r.line_index,
                external_item_id=r.line.external_item_id,
                name=r.line.name,
                quantity=r.line.quantity,
                price=r.line.unit_price,
                external_category=r.category,
                pos_item_id=r.pos_item_id,
                pos_variation_id=r.pos_variation_id,
                mapping_status=r.mapping_status,
            )
            for r in resolved
        ]

        try:
            with self.db.begin_nested():
                self.db.add(order)
                self.db.flush()
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            existing = self.dedup.find_existing(aggregator.id, incoming.external_order_id)
            if existing is None:
                raise
            return self._duplicate(aggregator, existing)
        except Exception:
            self.db.rollback()
            raise

        unmapped = sum(1 for r in resolved if r.mapping_status == MappingStatus.UNMAPPED)
        logger.info(
            f"Ingested {aggregator.platform} order {incoming.external_order_id} as aggregator order "
            f"{order.id} ({len(resolved)} lines)"
        )
        if unmapped:
            logger.warning(
                f"Aggregator order {order.id} has {unmapped} unmapped line(s); acceptance is blocked until mapped"
            )
        return IngestResult(order_id=order.id, is_duplicate=False, unmapped_count=unmapped)

    def _duplicate(self, aggregator: Aggregator, existing: AggregatorOrder) -> IngestResult:
        logger.info(
            f"Duplicate delivery of {aggregator.platform} order {existing.external_order_id}; "
            f"returning aggregator order {existing.id}"
        )
        return IngestResult(
            order_id=existing.id, is_duplicate=True, unmapped_count=existing.unmapped_count
        )
