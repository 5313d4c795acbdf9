"""Acceptance Engine - materializes a pending aggregator order as a POS order.

Flow (single transaction):
1. Lock the aggregator order row; it must be ``pending`` with no unmapped lines
2. Allocate the business-day ticket number
3. Build the order number ``<PLATFORM[:3]>-<YYMMDD>-<external number>``
4. Create the POS order and one item per resolvable line, priced per platform
   and routed to a kitchen counter through the category mappings
5. Move the aggregator order to ``mapped_to_pos`` and link the POS order

Lines whose POS item is missing at this point are skipped and logged, and
the POS order's ``item_count`` reflects only what was written. When the
write itself cannot complete, the aggregator order is parked in ``failed``
with the reason so an operator can fix the cause and retry.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from orderhub.core.config import settings
from orderhub.core.errors import AcceptanceFailed, MappingIncomplete, NotFound
from orderhub.db.base import utcnow
from orderhub.models.aggregator import AggregatorOrder, AggregatorOrderItem, AggregatorOrderStatus
from orderhub.models.order import (
    Order, OrderItem, OrderItemStatus, OrderStatus, OrderType, PaymentStatus,
)
from orderhub.models.store import ItemVariation, MenuItem, Store
from orderhub.services.mapping_store import CatalogMappingStore
from orderhub.services.order_lifecycle import apply_transition, ensure_transition
from orderhub.services.ticketing import TicketAllocator, as_utc, store_zone

logger = logging.getLogger(__name__)

ORDER_TYPES = {
    "swiggy": OrderType.DELIVERY_SWIGGY,
    "zomato": OrderType.DELIVERY_ZOMATO,
    "rapido": OrderType.DELIVERY_RAPIDO,
}


@dataclass
class AcceptanceResult:
    pos_order_id: int
    order_number: str
    token_number: int
    item_count: int
    skipped_lines: List[int] = field(default_factory=list)


class RoutingIncomplete(Exception):
    """A line could not be routed to a kitchen counter while routing is required."""

    def __init__(self, line_count: int):
        self.line_count = line_count
        super().__init__(f"No kitchen counter mapped for {line_count} line(s)")


def order_type_for(platform: str) -> OrderType:
    return ORDER_TYPES.get((platform or "").lower(), OrderType.DELIVERY_DIRECT)


def build_order_number(platform: str, now: datetime, zone: ZoneInfo, external_number: str) -> str:
    """``SWI-261019-1234`` style number; the date is the local calendar date."""
    local_date = as_utc(now).astimezone(zone).date()
    return f"{(platform or 'direct').upper()[:3]}-{local_date:%y%m%d}-{external_number}"


def resolve_unit_price(
    line: AggregatorOrderItem,
    menu_item: MenuItem,
    variation: Optional[ItemVariation],
    platform: str,
    fallback: Optional[str] = None,
) -> Decimal:
    """Unit price for a POS order item.

    A platform override on the menu item always wins. Without one the
    catalog price (variation, else item) is used, or the price the
    platform sent when ``fallback`` is ``"aggregator"``.
    """
    override = menu_item.price_for_platform(platform)
    if override is not None:
        return override
    if (fallback or settings.fallback_price_source) == "aggregator":
        return Decimal(line.price)
    if variation is not None:
        return Decimal(variation.price)
    return Decimal(menu_item.price)


class AcceptanceEngine:
    """Creates exactly one POS order per accepted aggregator order."""

    def __init__(
        self,
        db: Session,
        ticket_mode: Optional[str] = None,
        require_counter_routing: Optional[bool] = None,
        fallback_price_source: Optional[str] = None,
    ):
        self.db = db
        self.tickets = TicketAllocator(db, mode=ticket_mode)
        self.mappings = CatalogMappingStore(db)
        self.require_counter_routing = (
            settings.require_counter_routing if require_counter_routing is None else require_counter_routing
        )
        self.fallback_price_source = fallback_price_source or settings.fallback_price_source

    def _lock_order(self, order_id: int) -> AggregatorOrder:
        order = self.db.query(AggregatorOrder).filter(
            AggregatorOrder.id == order_id
        ).with_for_update().first()
        if not order:
            raise NotFound("Aggregator order", order_id)
        return order

    def accept(self, order_id: int, now: Optional[datetime] = None) -> AcceptanceResult:
        now = as_utc(now or utcnow())
        try:
            order = self._lock_order(order_id)
            # Guards run before any write
            ensure_transition(order, AggregatorOrderStatus.MAPPED_TO_POS)
            if order.unmapped_count:
                raise MappingIncomplete(order.unmapped_count)
        except Exception:
            self.db.rollback()
            raise

        try:
            result = self._materialize(order, now)
            self.db.commit()
        except RoutingIncomplete as e:
            self.db.rollback()
            self._park_failed(order_id, str(e))
            raise AcceptanceFailed(order_id, str(e)) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            message = f"Failed to create POS order: {e.__class__.__name__}"
            logger.error(f"Acceptance of aggregator order {order_id} failed: {e}")
            self._park_failed(order_id, message)
            raise AcceptanceFailed(order_id, message) from e
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"Accepted aggregator order {order_id} as POS order {result.pos_order_id} "
            f"({result.order_number}, token {result.token_number}, {result.item_count} items)"
        )
        return result

    def _materialize(self, order: AggregatorOrder, now: datetime) -> AcceptanceResult:
        store = self.db.get(Store, order.store_id)
        if not store:
            raise NotFound("Store", order.store_id)
        zone = store_zone(store)

        token_number = self.tickets.next_number(store, now)
        order_number = build_order_number(order.platform, now, zone, order.external_order_number)

        pos_order = Order(
            store_id=store.id,
            order_number=order_number,
            token_number=token_number,
            order_type=order_type_for(order.platform),
            status=OrderStatus.CONFIRMED,
            payment_status=PaymentStatus.PENDING,
            customer_name=order.customer_name,
            customer_phone=order.customer_phone,
            customer_address=order.delivery_address,
            aggregator_order_ref=order.external_order_id,
            aggregator_platform=order.platform,
            subtotal=order.subtotal,
            tax=order.tax or Decimal("0"),
            delivery_fee=order.delivery_fee,
            discount=order.discount,
            total=order.total,
            created_at=now,
            updated_at=now,
        )
        self.db.add(pos_order)
        self.db.flush()

        skipped: List[int] = []
        unrouted = 0
        for line in order.items:
            item = self._order_item(order, line, store)
            if item is None:
                skipped.append(line.line_index)
                continue
            if item.counter_id is None:
                unrouted += 1
            pos_order.items.append(item)

        if unrouted and self.require_counter_routing:
            raise RoutingIncomplete(unrouted)

        pos_order.item_count = len(pos_order.items)
        apply_transition(order, AggregatorOrderStatus.MAPPED_TO_POS)
        order.pos_order_id = pos_order.id
        order.accepted_at = now
        order.error_message = None
        self.db.flush()

        return AcceptanceResult(
            pos_order_id=pos_order.id,
            order_number=order_number,
            token_number=token_number,
            item_count=pos_order.item_count,
            skipped_lines=skipped,
        )

    def _order_item(
        self, order: AggregatorOrder, line: AggregatorOrderItem, store: Store
    ) -> Optional[OrderItem]:
        if line.pos_item_id is None:
            logger.warning(
                f"Aggregator order {order.id} line {line.line_index} is '{line.mapping_status.value}' "
                f"but has no POS item; skipped"
            )
            return None
        menu_item = self.db.get(MenuItem, line.pos_item_id)
        if menu_item is None or menu_item.store_id != store.id:
            logger.warning(
                f"Aggregator order {order.id} line {line.line_index}: menu item {line.pos_item_id} "
                f"no longer exists; skipped"
            )
            return None

        variation = None
        if line.pos_variation_id is not None:
            variation = self.db.get(ItemVariation, line.pos_variation_id)
            if variation is None or variation.menu_item_id != menu_item.id:
                logger.warning(
                    f"Aggregator order {order.id} line {line.line_index}: variation "
                    f"{line.pos_variation_id} not found; using base item"
                )
                variation = None

        price = resolve_unit_price(line, menu_item, variation, order.platform, self.fallback_price_source)
        counter_id = self._route(order, line)
        if counter_id is None:
            logger.warning(
                f"Aggregator order {order.id} line {line.line_index} ('{line.name}') has no kitchen counter"
            )

        return OrderItem(
            menu_item_id=menu_item.id,
            name=menu_item.name,
            price=price,
            quantity=line.quantity,
            variation_id=variation.id if variation else None,
            variation_name=variation.name if variation else None,
            variation_price=variation.price if variation else None,
            counter_id=counter_id,
            status=OrderItemStatus.PENDING,
            item_total=price * line.quantity,
        )

    def _route(self, order: AggregatorOrder, line: AggregatorOrderItem) -> Optional[int]:
        """Kitchen counter for a line, via the aggregator's category mappings."""
        labels = []
        if line.external_category:
            labels.append(line.external_category)
        mapping = self.mappings.find_item_mapping(order.aggregator_id, line.external_item_id)
        if mapping is not None and mapping.external_category:
            labels.append(mapping.external_category)

        for label in labels:
            category = self.mappings.find_category_for_label(order.aggregator_id, label)
            if category is not None and category.counter_id is not None:
                return category.counter_id
        return None

    def _park_failed(self, order_id: int, reason: str) -> None:
        order = self.db.get(AggregatorOrder, order_id)
        if order is None:
            return
        try:
            apply_transition(order, AggregatorOrderStatus.FAILED)
            order.error_message = reason
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Could not mark aggregator order {order_id} as failed: {e}")
            raise
        logger.warning(f"Aggregator order {order_id} moved to failed: {reason}")
