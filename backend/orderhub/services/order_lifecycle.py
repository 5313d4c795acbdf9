"""Aggregator order ledger: queries and lifecycle transitions.

State machine::

    pending -> accepted | rejected | mapped_to_pos | failed
    failed  -> pending            (retry, clears error_message)

``accepted``, ``rejected`` and ``mapped_to_pos`` are terminal. The
``pending -> mapped_to_pos`` move belongs to the acceptance engine; every
other move lives here. All of them go through ``apply_transition``.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, FrozenSet, List, Optional

from sqlalchemy.orm import Session

from orderhub.core.config import settings
from orderhub.core.errors import InvalidState, NotFound
from orderhub.db.base import utcnow
from orderhub.models.aggregator import AggregatorOrder, AggregatorOrderStatus, MappingStatus
from orderhub.services.catalog import check_pos_link

logger = logging.getLogger(__name__)

DEFAULT_REJECT_REASON = "Order rejected by user"

S = AggregatorOrderStatus

TRANSITIONS: Dict[AggregatorOrderStatus, FrozenSet[AggregatorOrderStatus]] = {
    S.PENDING: frozenset({S.ACCEPTED, S.REJECTED, S.MAPPED_TO_POS, S.FAILED}),
    S.FAILED: frozenset({S.PENDING}),
    S.ACCEPTED: frozenset(),
    S.REJECTED: frozenset(),
    S.MAPPED_TO_POS: frozenset(),
}

_VERBS = {
    S.ACCEPTED: "acknowledge",
    S.REJECTED: "reject",
    S.MAPPED_TO_POS: "accept",
    S.FAILED: "fail",
    S.PENDING: "retry",
}


def can_transition(current: AggregatorOrderStatus, target: AggregatorOrderStatus) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def ensure_transition(order: AggregatorOrder, target: AggregatorOrderStatus) -> None:
    """Raise ``InvalidState`` naming both states unless *order* may move to *target*."""
    current = AggregatorOrderStatus(order.status)
    if not can_transition(current, target):
        raise InvalidState(
            f"Cannot {_VERBS[target]} order {order.id}: status is '{current.value}'",
            current=current.value,
            requested=target.value,
        )


def apply_transition(order: AggregatorOrder, target: AggregatorOrderStatus) -> None:
    current = AggregatorOrderStatus(order.status)
    ensure_transition(order, target)
    order.status = target
    logger.info(f"Aggregator order {order.id}: {current.value} -> {target.value}")


class AggregatorOrderService:
    """Reads and operator actions on aggregator orders."""

    def __init__(self, db: Session):
        self.db = db

    def get_order(self, order_id: int) -> AggregatorOrder:
        order = self.db.get(AggregatorOrder, order_id)
        if not order:
            raise NotFound("Aggregator order", order_id)
        return order

    def list_by_status(
        self, store_id: int, status: Optional[AggregatorOrderStatus] = None
    ) -> List[AggregatorOrder]:
        query = self.db.query(AggregatorOrder).filter(AggregatorOrder.store_id == store_id)
        if status is not None:
            query = query.filter(AggregatorOrder.status == status)
        return query.order_by(AggregatorOrder.created_at.desc(), AggregatorOrder.id.desc()).all()

    def list_pending(self, store_id: int) -> List[AggregatorOrder]:
        return self.list_by_status(store_id, AggregatorOrderStatus.PENDING)

    def list_recent(
        self,
        store_id: int,
        hours: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> List[AggregatorOrder]:
        """Orders received in the last *hours* hours, newest first."""
        since = (now or utcnow()) - timedelta(hours=hours or settings.recent_orders_hours)
        return self.db.query(AggregatorOrder).filter(
            AggregatorOrder.store_id == store_id,
            AggregatorOrder.created_at >= since,
        ).order_by(AggregatorOrder.created_at.desc(), AggregatorOrder.id.desc()).all()

    def _save(self, order: AggregatorOrder) -> AggregatorOrder:
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(order)
        return order

    def reject(self, order_id: int, reason: Optional[str] = None) -> AggregatorOrder:
        """Reject a pending order regardless of its mapping completeness."""
        order = self.get_order(order_id)
        apply_transition(order, AggregatorOrderStatus.REJECTED)
        order.error_message = (reason or "").strip() or DEFAULT_REJECT_REASON
        return self._save(order)

    def acknowledge(self, order_id: int) -> AggregatorOrder:
        """Record the order as accepted without creating a POS order."""
        order = self.get_order(order_id)
        apply_transition(order, AggregatorOrderStatus.ACCEPTED)
        order.accepted_at = utcnow()
        return self._save(order)

    def mark_failed(self, order_id: int, reason: str) -> AggregatorOrder:
        order = self.get_order(order_id)
        apply_transition(order, AggregatorOrderStatus.FAILED)
        order.error_message = reason
        return self._save(order)

    def retry(self, order_id: int) -> AggregatorOrder:
        """Send a failed order back to pending and clear its error."""
        order = self.get_order(order_id)
        apply_transition(order, AggregatorOrderStatus.PENDING)
        order.error_message = None
        return self._save(order)

    def remap_line(
        self,
        order_id: int,
        line_index: int,
        pos_item_id: int,
        pos_variation_id: Optional[int] = None,
    ) -> AggregatorOrder:
        """Point one line of a pending order at a POS item and mark it ``manual``.

        The catalog mapping is left untouched; only this order's line changes.
        """
        order = self.get_order(order_id)
        if order.status != AggregatorOrderStatus.PENDING:
            raise InvalidState(
                f"Cannot remap order {order.id}: status is '{AggregatorOrderStatus(order.status).value}'",
                current=AggregatorOrderStatus(order.status).value,
            )
        line = next((item for item in order.items if item.line_index == line_index), None)
        if line is None:
            raise NotFound("Order line", line_index)
        check_pos_link(self.db, order.store_id, pos_item_id, pos_variation_id)

        line.pos_item_id = pos_item_id
        line.pos_variation_id = pos_variation_id
        line.mapping_status = MappingStatus.MANUAL
        logger.info(
            f"Aggregator order {order.id} line {line_index} manually mapped to item {pos_item_id}"
            + (f" variation {pos_variation_id}" if pos_variation_id else "")
        )
        return self._save(order)
