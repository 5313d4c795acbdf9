"""Swiggy order payload adapter."""

from orderhub.services.delivery.base import PlatformAdapter


class SwiggyAdapter(PlatformAdapter):
    """Swiggy pushes snake_case on its partner API and camelCase on the legacy relay."""

    platform_name = "swiggy"

    order_id_paths = ("order_id", "orderId")
    order_number_paths = ("order_number", "orderNumber", "order_id")
    customer_name_paths = ("customer.name", "customerName")
    customer_phone_paths = ("customer.phone", "customerPhone")
    address_paths = ("delivery_address.full_address", "deliveryAddress")
    item_price_paths = ("price", "total_price")
    subtotal_paths = ("subtotal", "item_total")
    tax_paths = ("tax", "taxes.total")
    delivery_fee_paths = ("delivery_fee", "delivery_charges")
    total_paths = ("total", "order_total")
    estimated_time_paths = ("estimated_delivery_time",)
