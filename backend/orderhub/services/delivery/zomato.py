"""Zomato order payload adapter."""

from orderhub.services.delivery.base import PlatformAdapter


class ZomatoAdapter(PlatformAdapter):
    platform_name = "zomato"

    order_id_paths = ("order_id", "id")
    order_number_paths = ("order_number", "display_id")
    address_paths = ("delivery.address.full_address", "delivery.address")
    items_paths = ("items", "order_items")
    item_id_paths = ("item_id", "id")
    item_price_paths = ("price", "total")
    subtotal_paths = ("order_subtotal", "subtotal")
    delivery_fee_paths = ("delivery_charge",)
    total_paths = ("order_total", "total")
    estimated_time_paths = ("delivery_time",)
