"""Rapido order payload adapter."""

from orderhub.services.delivery.base import PlatformAdapter


class RapidoAdapter(PlatformAdapter):
    platform_name = "rapido"

    order_id_paths = ("order_id", "orderId")
    order_number_paths = ("order_number", "orderNumber")
    customer_name_paths = ("customer_name", "customer.name")
    customer_phone_paths = ("customer_phone", "customer.phone")
    address_paths = ("delivery_address", "address")
    item_name_paths = ("name",)
