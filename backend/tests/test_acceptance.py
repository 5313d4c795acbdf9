"""Tests for the acceptance engine: POS order materialization."""

from datetime import datetime, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from orderhub.core.errors import AcceptanceFailed, InvalidState, MappingIncomplete, NotFound
from orderhub.models import (
    AggregatorCategoryMapping, AggregatorItemMapping, AggregatorOrder, AggregatorOrderStatus,
    MenuItem, Order, OrderItem, OrderStatus, OrderType, PaymentStatus,
)
from orderhub.services.acceptance_service import (
    AcceptanceEngine, build_order_number, order_type_for,
)
from orderhub.services.delivery.swiggy import SwiggyAdapter
from orderhub.services.ingestion_service import OrderIngestionService
from orderhub.services.order_lifecycle import AggregatorOrderService

from conftest import swiggy_payload

IST = ZoneInfo("Asia/Kolkata")
# 2026-10-19 14:00 IST
NOON_ISH = datetime(2026, 10, 19, 8, 30, tzinfo=timezone.utc)


@pytest.fixture
def mapped_catalog(db_session: Session, swiggy, menu, counters):
    """Both Swiggy items mapped; starters and desserts routed to counters."""
    db_session.add_all([
        AggregatorItemMapping(
            aggregator_id=swiggy.id, store_id=swiggy.store_id,
            external_item_id="SW-PT", external_item_name="Paneer Tikka",
            external_category="Starters", pos_item_id=menu["paneer"].id,
        ),
        AggregatorItemMapping(
            aggregator_id=swiggy.id, store_id=swiggy.store_id,
            external_item_id="SW-GJ", external_item_name="Gulab Jamun",
            pos_item_id=menu["jamun"].id,
        ),
        AggregatorCategoryMapping(
            aggregator_id=swiggy.id, store_id=swiggy.store_id,
            external_category_id="cat-1", external_category_name="Starters",
            counter_id=counters["tandoor"].id,
        ),
        AggregatorCategoryMapping(
            aggregator_id=swiggy.id, store_id=swiggy.store_id,
            external_category_id="desserts", external_category_name="Sweets",
            counter_id=counters["desserts"].id,
        ),
    ])
    db_session.commit()


def ingest(db_session: Session, aggregator, payload: dict) -> int:
    incoming = SwiggyAdapter().normalize_payload(payload)
    return OrderIngestionService(db_session).ingest(aggregator, incoming).order_id


class TestHelpers:
    """Tests for order numbering and typing."""

    def test_order_number_uses_local_date(self):
        # 20:00 UTC on the 18th is already the 19th in India
        moment = datetime(2026, 10, 18, 20, 0, tzinfo=timezone.utc)
        assert build_order_number("swiggy", moment, IST, "5001") == "SWI-261019-5001"
        assert build_order_number("zomato", moment, IST, "Z9") == "ZOM-261019-Z9"

    def test_order_type_per_platform(self):
        assert order_type_for("swiggy") == OrderType.DELIVERY_SWIGGY
        assert order_type_for("Zomato") == OrderType.DELIVERY_ZOMATO
        assert order_type_for("rapido") == OrderType.DELIVERY_RAPIDO
        assert order_type_for("ondc") == OrderType.DELIVERY_DIRECT


class TestPrematureAcceptance:
    """Unmapped lines block acceptance before anything is written."""

    def test_unmapped_line_blocks_acceptance(self, db_session: Session, swiggy, menu):
        order_id = ingest(db_session, swiggy, swiggy_payload())
        with pytest.raises(MappingIncomplete) as exc:
            AcceptanceEngine(db_session).accept(order_id, now=NOON_ISH)
        assert exc.value.unmapped_count == 2
        assert exc.value.message == "Cannot accept order: 2 items are not mapped to POS items"
        assert db_session.query(Order).count() == 0
        assert db_session.get(AggregatorOrder, order_id).status == AggregatorOrderStatus.PENDING

    def test_partially_mapped_order_still_blocked(self, db_session: Session, swiggy, menu):
        db_session.add(AggregatorItemMapping(
            aggregator_id=swiggy.id, store_id=swiggy.store_id,
            external_item_id="SW-PT", external_item_name="Paneer Tikka", pos_item_id=menu["paneer"].id,
        ))
        db_session.commit()
        order_id = ingest(db_session, swiggy, swiggy_payload())
        with pytest.raises(MappingIncomplete) as exc:
            AcceptanceEngine(db_session).accept(order_id, now=NOON_ISH)
        assert exc.value.unmapped_count == 1
        assert db_session.query(OrderItem).count() == 0

    def test_unknown_order(self, db_session: Session):
        with pytest.raises(NotFound):
            AcceptanceEngine(db_session).accept(4242)


class TestAcceptance:
    """Tests for a successful acceptance."""

    def test_creates_pos_order(self, db_session: Session, swiggy, menu, counters, mapped_catalog):
        order_id = ingest(db_session, swiggy, swiggy_payload())
        result = AcceptanceEngine(db_session).accept(order_id, now=NOON_ISH)

        assert result.order_number == "SWI-261019-5001"
        assert result.token_number == 1
        assert result.item_count == 2
        assert result.skipped_lines == []

        pos_order = db_session.get(Order, result.pos_order_id)
        assert pos_order.order_type == OrderType.DELIVERY_SWIGGY
        assert pos_order.status == OrderStatus.CONFIRMED
        assert pos_order.payment_status == PaymentStatus.PENDING
        assert pos_order.customer_name == "Asha Rao"
        assert pos_order.customer_address == "12 MG Road, Bengaluru"
        assert pos_order.aggregator_order_ref == "SWG-5001"
        assert pos_order.aggregator_platform == "swiggy"
        assert pos_order.total == Decimal("382.00")
        assert pos_order.item_count == 2

        paneer, jamun = sorted(pos_order.items, key=lambda item: item.name, reverse=True)
        assert paneer.menu_item_id == menu["paneer"].id
        assert paneer.price == Decimal("150.00")
        assert paneer.quantity == 2
        assert paneer.item_total == Decimal("300.00")
        assert paneer.counter_id == counters["tandoor"].id
        assert jamun.price == Decimal("50.00")
        assert jamun.counter_id == counters["desserts"].id

        order = db_session.get(AggregatorOrder, order_id)
        assert order.status == AggregatorOrderStatus.MAPPED_TO_POS
        assert order.pos_order_id == pos_order.id
        assert order.accepted_at is not None
        assert order.error_message is None

    def test_accepting_twice_is_invalid(self, db_session: Session, swiggy, mapped_catalog):
        order_id = ingest(db_session, swiggy, swiggy_payload())
        engine = AcceptanceEngine(db_session)
        engine.accept(order_id, now=NOON_ISH)
        with pytest.raises(InvalidState) as exc:
            engine.accept(order_id, now=NOON_ISH)
        assert exc.value.current == "mapped_to_pos"
        assert db_session.query(Order).count() == 1

    def test_rejected_order_cannot_be_accepted(self, db_session: Session, swiggy, mapped_catalog):
        order_id = ingest(db_session, swiggy, swiggy_payload())
        AggregatorOrderService(db_session).reject(order_id)
        with pytest.raises(InvalidState):
            AcceptanceEngine(db_session).accept(order_id, now=NOON_ISH)

    def test_line_with_vanished_menu_item_is_skipped(self, db_session: Session, swiggy, menu, mapped_catalog):
        order_id = ingest(db_session, swiggy, swiggy_payload())
        # The menu item is removed after the order was resolved
        db_session.delete(db_session.get(MenuItem, menu["jamun"].id))
        db_session.commit()

        result = AcceptanceEngine(db_session).accept(order_id, now=NOON_ISH)
        assert result.item_count == 1
        assert result.skipped_lines == [1]
        assert db_session.query(OrderItem).count() == 1
        assert db_session.get(AggregatorOrder, order_id).status == AggregatorOrderStatus.MAPPED_TO_POS

    def test_unrouted_line_kept_when_routing_optional(self, db_session: Session, swiggy, menu):
        db_session.add(AggregatorItemMapping(
            aggregator_id=swiggy.id, store_id=swiggy.store_id,
            external_item_id="SW-PT", external_item_name="Paneer Tikka", pos_item_id=menu["paneer"].id,
        ))
        db_session.commit()
        order_id = ingest(db_session, swiggy, swiggy_payload(items=[{"id": "SW-PT", "name": "Paneer Tikka"}]))
        result = AcceptanceEngine(db_session, require_counter_routing=False).accept(order_id, now=NOON_ISH)
        item = db_session.query(OrderItem).one()
        assert result.item_count == 1
        assert item.counter_id is None


class TestAcceptanceFailure:
    """Failures during materialization park the order in ``failed``."""

    def test_required_routing_missing(self, db_session: Session, swiggy, menu):
        db_session.add(AggregatorItemMapping(
            aggregator_id=swiggy.id, store_id=swiggy.store_id,
            external_item_id="SW-PT", external_item_name="Paneer Tikka", pos_item_id=menu["paneer"].id,
        ))
        db_session.commit()
        order_id = ingest(db_session, swiggy, swiggy_payload(items=[{"id": "SW-PT", "name": "Paneer Tikka"}]))

        with pytest.raises(AcceptanceFailed) as exc:
            AcceptanceEngine(db_session, require_counter_routing=True).accept(order_id, now=NOON_ISH)

        order = db_session.get(AggregatorOrder, order_id)
        assert order.status == AggregatorOrderStatus.FAILED
        assert order.error_message == exc.value.message
        assert order.pos_order_id is None
        assert db_session.query(Order).count() == 0
        assert db_session.query(OrderItem).count() == 0

        # Operator fixes the cause and retries
        retried = AggregatorOrderService(db_session).retry(order_id)
        assert retried.status == AggregatorOrderStatus.PENDING
        assert retried.error_message is None

    def test_database_error_during_write(self, db_session: Session, swiggy, mapped_catalog, monkeypatch):
        order_id = ingest(db_session, swiggy, swiggy_payload())
        engine = AcceptanceEngine(db_session)

        def broken_allocator(store, now):
            raise OperationalError("UPDATE ticket_sequences", {}, Exception("database is locked"))

        monkeypatch.setattr(engine.tickets, "next_number", broken_allocator)
        with pytest.raises(AcceptanceFailed) as exc:
            engine.accept(order_id, now=NOON_ISH)

        assert exc.value.message == "Failed to create POS order: OperationalError"
        order = db_session.get(AggregatorOrder, order_id)
        assert order.status == AggregatorOrderStatus.FAILED
        assert order.error_message == "Failed to create POS order: OperationalError"
        assert db_session.query(Order).count() == 0
