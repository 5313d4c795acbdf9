"""Tests for order ingestion and deduplication."""

from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from orderhub.core.errors import InvalidState
from orderhub.models import (
    AggregatorItemMapping, AggregatorOrder, AggregatorOrderItem, AggregatorOrderStatus, MappingStatus,
)
from orderhub.services.delivery.swiggy import SwiggyAdapter
from orderhub.services.ingestion_service import OrderIngestionService
from orderhub.services.mapping_resolver import MappingResolver

from conftest import swiggy_payload


@pytest.fixture
def paneer_mapping(db_session: Session, swiggy, menu) -> AggregatorItemMapping:
    """Swiggy's Paneer Tikka id mapped to the POS item."""
    mapping = AggregatorItemMapping(
        aggregator_id=swiggy.id,
        store_id=swiggy.store_id,
        external_item_id="SW-PT",
        external_item_name="Paneer Tikka",
        external_category="Starters",
        pos_item_id=menu["paneer"].id,
    )
    db_session.add(mapping)
    db_session.commit()
    return mapping


class TestIngestion:
    """Tests for OrderIngestionService.ingest."""

    def test_records_pending_order_with_resolved_lines(self, db_session: Session, swiggy, paneer_mapping, menu):
        incoming = SwiggyAdapter().normalize_payload(swiggy_payload())
        result = OrderIngestionService(db_session).ingest(swiggy, incoming)

        assert result.is_duplicate is False
        assert result.unmapped_count == 1

        order = db_session.get(AggregatorOrder, result.order_id)
        assert order.status == AggregatorOrderStatus.PENDING
        assert order.platform == "swiggy"
        assert order.store_id == swiggy.store_id
        assert order.total == Decimal("382.00")
        assert order.pos_order_id is None
        assert [line.line_index for line in order.items] == [0, 1]

        mapped, unmapped = order.items
        assert mapped.mapping_status == MappingStatus.MAPPED
        assert mapped.pos_item_id == menu["paneer"].id
        assert mapped.price == Decimal("140.00")
        assert unmapped.mapping_status == MappingStatus.UNMAPPED
        assert unmapped.pos_item_id is None
        assert unmapped.external_category == "Desserts"

    def test_same_payload_twice_yields_one_order(self, db_session: Session, swiggy):
        service = OrderIngestionService(db_session)
        first = service.ingest(swiggy, SwiggyAdapter().normalize_payload(swiggy_payload()))
        second = service.ingest(swiggy, SwiggyAdapter().normalize_payload(swiggy_payload()))

        assert first.is_duplicate is False
        assert second.is_duplicate is True
        assert second.order_id == first.order_id
        assert db_session.query(AggregatorOrder).count() == 1
        assert db_session.query(AggregatorOrderItem).count() == 2

    def test_same_external_id_on_other_aggregator_is_a_new_order(self, db_session: Session, swiggy, zomato):
        service = OrderIngestionService(db_session)
        incoming = SwiggyAdapter().normalize_payload(swiggy_payload())
        first = service.ingest(swiggy, incoming)
        second = service.ingest(zomato, incoming)
        assert second.is_duplicate is False
        assert second.order_id != first.order_id

    def test_lost_insert_race_reported_as_duplicate(self, db_session: Session, swiggy, monkeypatch):
        service = OrderIngestionService(db_session)
        first = service.ingest(swiggy, SwiggyAdapter().normalize_payload(swiggy_payload()))

        # Simulate a concurrent delivery that passed the lookup before the first commit
        real_find = service.dedup.find_existing
        calls = []

        def stale_then_real(aggregator_id, external_order_id):
            calls.append(external_order_id)
            if len(calls) == 1:
                return None
            return real_find(aggregator_id, external_order_id)

        monkeypatch.setattr(service.dedup, "find_existing", stale_then_real)
        second = service.ingest(swiggy, SwiggyAdapter().normalize_payload(swiggy_payload()))

        assert len(calls) == 2
        assert second.is_duplicate is True
        assert second.order_id == first.order_id
        assert db_session.query(AggregatorOrder).count() == 1

    def test_disabled_aggregator_refused(self, db_session: Session, swiggy):
        swiggy.is_enabled = False
        db_session.commit()
        with pytest.raises(InvalidState):
            OrderIngestionService(db_session).ingest(
                swiggy, SwiggyAdapter().normalize_payload(swiggy_payload())
            )
        assert db_session.query(AggregatorOrder).count() == 0


class TestMappingResolution:
    """Tests for MappingResolver.resolve_lines."""

    def test_inactive_mapping_leaves_line_unmapped(self, db_session: Session, swiggy, paneer_mapping):
        paneer_mapping.is_active = False
        db_session.commit()
        lines = SwiggyAdapter().normalize_payload(swiggy_payload()).lines
        resolved = MappingResolver(db_session).resolve_lines(swiggy.id, lines)
        assert [r.mapping_status for r in resolved] == [MappingStatus.UNMAPPED, MappingStatus.UNMAPPED]

    def test_mapping_without_pos_item_is_unmapped(self, db_session: Session, swiggy):
        db_session.add(AggregatorItemMapping(
            aggregator_id=swiggy.id,
            store_id=swiggy.store_id,
            external_item_id="SW-GJ",
            external_item_name="Gulab Jamun",
            external_category="Sweets",
        ))
        db_session.commit()
        lines = SwiggyAdapter().normalize_payload(
            swiggy_payload(items=[{"id": "SW-GJ", "name": "Gulab Jamun"}])
        ).lines
        resolved = MappingResolver(db_session).resolve_lines(swiggy.id, lines)
        assert resolved[0].mapping_status == MappingStatus.UNMAPPED
        # The mapping's category still travels with the line
        assert resolved[0].category == "Sweets"

    def test_variation_carried_from_mapping(self, db_session: Session, swiggy, menu):
        db_session.add(AggregatorItemMapping(
            aggregator_id=swiggy.id,
            store_id=swiggy.store_id,
            external_item_id="SW-LL",
            external_item_name="Large Lassi",
            pos_item_id=menu["lassi"].id,
            pos_variation_id=menu["large_lassi"].id,
        ))
        db_session.commit()
        lines = SwiggyAdapter().normalize_payload(
            swiggy_payload(items=[{"id": "SW-LL", "name": "Large Lassi"}])
        ).lines
        resolved = MappingResolver(db_session).resolve_lines(swiggy.id, lines)
        assert resolved[0].mapping_status == MappingStatus.MAPPED
        assert resolved[0].pos_variation_id == menu["large_lassi"].id
