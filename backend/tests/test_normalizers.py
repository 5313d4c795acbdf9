"""Tests for the platform payload adapters."""

import json
from decimal import Decimal

import pytest

from orderhub.core.errors import BadPayload, NotFound
from orderhub.services.delivery.base import (
    DEFAULT_ESTIMATED_TIME, lookup, lookup_nonzero, parse_payload, to_amount, to_minutes, to_quantity,
)
from orderhub.services.delivery.rapido import RapidoAdapter
from orderhub.services.delivery.registry import get_adapter, supported_platforms
from orderhub.services.delivery.swiggy import SwiggyAdapter
from orderhub.services.delivery.zomato import ZomatoAdapter

from conftest import sign, swiggy_payload


class TestPayloadHelpers:
    """Tests for the shared field helpers."""

    def test_lookup_first_present_path_wins(self):
        data = {"orderId": "B", "order_id": "", "customer": {"name": "Ravi"}}
        assert lookup(data, ("order_id", "orderId")) == "B"
        assert lookup(data, ("customer.name",)) == "Ravi"
        assert lookup(data, ("customer.phone", "missing")) is None

    def test_lookup_does_not_descend_into_scalars(self):
        assert lookup({"delivery_address": "12 MG Road"}, ("delivery_address.full_address",)) is None

    def test_amount_defaults_to_zero(self):
        assert to_amount(None, "tax") == Decimal("0")
        assert to_amount("", "tax") == Decimal("0")
        assert to_amount("12.50", "tax") == Decimal("12.50")

    @pytest.mark.parametrize("value", ["abc", -1, "NaN", True, {"a": 1}])
    def test_amount_rejects_bad_values(self, value):
        with pytest.raises(BadPayload):
            to_amount(value, "total")

    def test_quantity_defaults_to_one(self):
        assert to_quantity(None, "q") == 1
        assert to_quantity(0, "q") == 1
        assert to_quantity("3", "q") == 3

    def test_fractional_quantity_rejected(self):
        with pytest.raises(BadPayload):
            to_quantity(1.5, "q")

    @pytest.mark.parametrize("value", [10**20, "2147483648", 1e300])
    def test_quantity_beyond_column_range_rejected(self, value):
        with pytest.raises(BadPayload) as exc:
            to_quantity(value, "items[0].quantity")
        assert "out of range" in exc.value.message

    def test_largest_quantity_accepted(self):
        assert to_quantity(2**31 - 1, "q") == 2**31 - 1

    @pytest.mark.parametrize("value", [10**8, "123456789.00", 1e400])
    def test_amount_beyond_column_range_rejected(self, value):
        with pytest.raises(BadPayload):
            to_amount(value, "total")

    def test_largest_amount_accepted(self):
        assert to_amount("99999999.99", "total") == Decimal("99999999.99")

    @pytest.mark.parametrize("value", [1e400, float("-inf"), "Infinity", "NaN", -15, "-5", 0, None, "soon", True, 10**20])
    def test_unusable_minutes_use_default(self, value):
        assert to_minutes(value) == DEFAULT_ESTIMATED_TIME

    def test_minutes_parsed(self):
        assert to_minutes(45) == 45
        assert to_minutes("20") == 20

    def test_zero_falls_through_to_next_path(self):
        item = {"price": 0, "total_price": 210}
        assert lookup_nonzero(item, ("price", "total_price")) == 210
        assert lookup(item, ("price", "total_price")) == 0
        assert lookup_nonzero({"price": "0.00"}, ("price",)) == "0.00"
        assert lookup_nonzero({"price": 0}, ("price",)) is None

    @pytest.mark.parametrize("body", [b"not json", b"[1, 2]", b"\xff\xfe"])
    def test_parse_payload_rejects_non_objects(self, body):
        with pytest.raises(BadPayload) as exc:
            parse_payload(body)
        assert exc.value.message == "Invalid JSON payload"


class TestSwiggyAdapter:
    """Tests for Swiggy payload normalization."""

    def test_partner_api_shape(self):
        order = SwiggyAdapter().normalize(json.dumps(swiggy_payload()).encode())
        assert order.platform == "swiggy"
        assert order.external_order_id == "SWG-5001"
        assert order.external_order_number == "5001"
        assert order.restaurant_id == "SW-1001"
        assert order.customer_name == "Asha Rao"
        assert order.customer_phone == "+919800000001"
        assert order.delivery_address == "12 MG Road, Bengaluru"
        assert order.total == Decimal("382")
        assert order.estimated_time == 35
        assert [line.external_item_id for line in order.lines] == ["SW-PT", "SW-GJ"]
        assert order.lines[0].quantity == 2
        assert order.lines[0].unit_price == Decimal("140")
        assert order.lines[0].category == "Starters"

    def test_legacy_camel_case_shape(self):
        payload = {
            "orderId": 778,
            "restaurantId": "SW-1001",
            "customerName": "Imran",
            "customerPhone": "+91 98000 00002",
            "deliveryAddress": "Indiranagar",
            "items": [{"item_id": "A1", "item_name": "Dal Makhani", "total_price": "210"}],
            "item_total": "210",
            "taxes": {"total": "10.5"},
            "delivery_charges": 20,
            "order_total": "240.5",
        }
        order = SwiggyAdapter().normalize_payload(payload)
        assert order.external_order_id == "778"
        # Falls back to the order id when no display number is sent
        assert order.external_order_number == "778"
        assert order.customer_name == "Imran"
        assert order.delivery_address == "Indiranagar"
        assert order.lines[0].name == "Dal Makhani"
        assert order.lines[0].unit_price == Decimal("210")
        assert order.tax == Decimal("10.5")
        assert order.delivery_fee == Decimal("20")
        assert order.total == Decimal("240.5")
        assert order.estimated_time == 30

    def test_raw_payload_kept_verbatim(self):
        body = json.dumps(swiggy_payload(), indent=2)
        assert SwiggyAdapter().normalize(body).raw_payload == body

    def test_missing_order_id(self):
        payload = swiggy_payload()
        del payload["order_id"]
        with pytest.raises(BadPayload) as exc:
            SwiggyAdapter().normalize_payload(payload)
        assert exc.value.message == "Missing order ID"

    def test_items_must_be_a_list(self):
        with pytest.raises(BadPayload):
            SwiggyAdapter().normalize_payload(swiggy_payload(items={"id": "x"}))

    def test_line_without_item_id(self):
        with pytest.raises(BadPayload) as exc:
            SwiggyAdapter().normalize_payload(swiggy_payload(items=[{"name": "Mystery"}]))
        assert "Item 0" in exc.value.message

    def test_line_defaults(self):
        order = SwiggyAdapter().normalize_payload(swiggy_payload(items=[{"id": "X"}]))
        line = order.lines[0]
        assert line.name == "Unknown item"
        assert line.quantity == 1
        assert line.unit_price == Decimal("0")

    def test_no_items_is_an_empty_order(self):
        payload = swiggy_payload()
        del payload["items"]
        assert SwiggyAdapter().normalize_payload(payload).lines == []

    def test_zero_price_uses_total_price(self):
        items = [{"id": "SW-PT", "price": 0, "total_price": 280, "quantity": 2}]
        order = SwiggyAdapter().normalize_payload(swiggy_payload(items=items))
        assert order.lines[0].unit_price == Decimal("280")

    def test_infinite_estimate_uses_default(self):
        body = json.dumps(swiggy_payload(estimated_delivery_time=float("inf"))).encode()
        assert SwiggyAdapter().normalize(body).estimated_time == DEFAULT_ESTIMATED_TIME

    def test_negative_estimate_uses_default(self):
        order = SwiggyAdapter().normalize_payload(swiggy_payload(estimated_delivery_time=-20))
        assert order.estimated_time == DEFAULT_ESTIMATED_TIME

    def test_huge_quantity_rejected(self):
        with pytest.raises(BadPayload):
            SwiggyAdapter().normalize_payload(swiggy_payload(items=[{"id": "SW-PT", "quantity": 10**20, "price": 1}]))


class TestZomatoAdapter:
    """Tests for Zomato payload normalization."""

    def test_zomato_shape(self):
        payload = {
            "id": "ZMT-9",
            "display_id": "Z9",
            "res_id": 2002,
            "customer": {"name": "Meera", "phone": "+919800000003"},
            "delivery": {"address": {"full_address": "HSR Layout"}},
            "order_items": [{"id": "ZI-1", "name": "Gulab Jamun", "quantity": 3, "total": 150}],
            "order_subtotal": 150,
            "delivery_charge": 30,
            "order_total": 180,
            "delivery_time": 25,
        }
        order = ZomatoAdapter().normalize_payload(payload)
        assert order.external_order_id == "ZMT-9"
        assert order.external_order_number == "Z9"
        assert order.restaurant_id == "2002"
        assert order.delivery_address == "HSR Layout"
        assert order.lines[0].external_item_id == "ZI-1"
        assert order.lines[0].quantity == 3
        assert order.subtotal == Decimal("150")
        assert order.delivery_fee == Decimal("30")
        assert order.total == Decimal("180")
        assert order.estimated_time == 25

    def test_flat_delivery_address(self):
        payload = {"order_id": "Z1", "delivery": {"address": "BTM 2nd Stage"}, "items": []}
        assert ZomatoAdapter().normalize_payload(payload).delivery_address == "BTM 2nd Stage"


class TestRapidoAdapter:
    """Tests for Rapido payload normalization."""

    def test_rapido_shape(self):
        payload = {
            "orderId": "RPD-1",
            "orderNumber": "R-1",
            "restaurant_id": "RP-3",
            "customer_name": "Kiran",
            "customer_phone": "+919800000004",
            "address": "Whitefield",
            "items": [{"id": "R-7", "name": "Sweet Lassi", "quantity": 1, "price": 70}],
            "total": 70,
        }
        order = RapidoAdapter().normalize_payload(payload)
        assert order.external_order_id == "RPD-1"
        assert order.external_order_number == "R-1"
        assert order.customer_name == "Kiran"
        assert order.delivery_address == "Whitefield"
        assert order.lines[0].name == "Sweet Lassi"


class TestSignatures:
    """Tests for webhook signature verification."""

    def test_valid_signature(self):
        body = b'{"order_id": "1"}'
        assert SwiggyAdapter().verify_signature(body, sign(body, "s3cret"), "s3cret")

    def test_uppercase_hex_accepted(self):
        body = b'{"order_id": "1"}'
        assert SwiggyAdapter().verify_signature(body, sign(body, "s3cret").upper(), "s3cret")

    def test_wrong_secret_or_missing_signature(self):
        body = b'{"order_id": "1"}'
        adapter = ZomatoAdapter()
        assert not adapter.verify_signature(body, sign(body, "other"), "s3cret")
        assert not adapter.verify_signature(body, None, "s3cret")
        assert not adapter.verify_signature(body, sign(body, "s3cret"), None)

    def test_signature_header_names(self):
        assert SwiggyAdapter().signature_header == "X-Swiggy-Signature"
        assert RapidoAdapter().signature_header == "X-Rapido-Signature"


class TestRegistry:
    """Tests for adapter lookup."""

    def test_lookup_is_case_insensitive(self):
        assert get_adapter("Swiggy").platform_name == "swiggy"

    def test_unknown_platform(self):
        with pytest.raises(NotFound):
            get_adapter("ubereats")

    def test_supported_platforms(self):
        assert supported_platforms() == ["rapido", "swiggy", "zomato"]
