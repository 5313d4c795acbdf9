"""Tests for unit price selection when materializing POS order items."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from orderhub.models import AggregatorItemMapping, OrderItem
from orderhub.services.acceptance_service import AcceptanceEngine
from orderhub.services.delivery.registry import get_adapter
from orderhub.services.ingestion_service import OrderIngestionService

from conftest import swiggy_payload

NOW = datetime(2026, 10, 19, 8, 30, tzinfo=timezone.utc)


def accept_one_line(db_session: Session, aggregator, pos_item_id, pos_variation_id=None, **engine_options):
    """Map one external item, ingest an order for it at 140 and accept it."""
    db_session.add(AggregatorItemMapping(
        aggregator_id=aggregator.id,
        store_id=aggregator.store_id,
        external_item_id="EXT-1",
        external_item_name="Paneer Tikka",
        pos_item_id=pos_item_id,
        pos_variation_id=pos_variation_id,
    ))
    db_session.commit()
    payload = swiggy_payload(
        order_id=f"{aggregator.platform}-1",
        restaurant_id=aggregator.restaurant_id,
        items=[{"id": "EXT-1", "name": "Paneer Tikka", "quantity": 1, "price": 140}],
    )
    incoming = get_adapter(aggregator.platform).normalize_payload(payload)
    order_id = OrderIngestionService(db_session).ingest(aggregator, incoming).order_id
    AcceptanceEngine(db_session, **engine_options).accept(order_id, now=NOW)
    return db_session.query(OrderItem).one()


class TestPricingPrecedence:
    """Platform override, then catalog price; the aggregator's price only on request."""

    def test_platform_override_wins(self, db_session: Session, swiggy, menu):
        item = accept_one_line(db_session, swiggy, menu["paneer"].id)
        assert item.price == Decimal("150.00")

    def test_base_price_without_override(self, db_session: Session, zomato, menu):
        item = accept_one_line(db_session, zomato, menu["paneer"].id)
        assert item.price == Decimal("120.00")
        assert item.item_total == Decimal("120.00")

    def test_override_stored_as_string(self, db_session: Session, zomato, menu):
        item = accept_one_line(db_session, zomato, menu["jamun"].id)
        assert item.price == Decimal("55.00")

    def test_variation_price_used(self, db_session: Session, zomato, menu):
        item = accept_one_line(db_session, zomato, menu["lassi"].id, menu["large_lassi"].id)
        assert item.price == Decimal("80.00")
        assert item.variation_name == "Large"
        assert item.variation_price == Decimal("80.00")

    def test_aggregator_price_fallback(self, db_session: Session, zomato, menu):
        item = accept_one_line(
            db_session, zomato, menu["paneer"].id, fallback_price_source="aggregator"
        )
        assert item.price == Decimal("140.00")

    def test_override_beats_aggregator_fallback(self, db_session: Session, swiggy, menu):
        item = accept_one_line(
            db_session, swiggy, menu["paneer"].id, fallback_price_source="aggregator"
        )
        assert item.price == Decimal("150.00")
