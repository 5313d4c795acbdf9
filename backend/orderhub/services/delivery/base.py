"""Abstract base class for delivery platform payload adapters.

Each platform pushes orders in its own JSON shape, and none of them keep
field names stable across API versions. An adapter declares, per
canonical field, the paths it may appear under (first one present wins)
and turns a raw webhook body into an ``IncomingOrder``. Adapters never
touch the database.
"""

import hashlib
import hmac
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from orderhub.core.errors import BadPayload

Paths = Tuple[str, ...]

DEFAULT_ESTIMATED_TIME = 30  # minutes

# Column limits: Numeric(10, 2) amounts and 32-bit integer quantities
MAX_AMOUNT = Decimal("99999999.99")
MAX_QUANTITY = 2**31 - 1


@dataclass
class IncomingLine:
    """One canonical order line."""

    external_item_id: str
    name: str
    quantity: int = 1
    unit_price: Decimal = Decimal("0")
    category: Optional[str] = None


@dataclass
class IncomingOrder:
    """Canonical order produced by every platform adapter."""

    platform: str
    external_order_id: str
    external_order_number: str
    restaurant_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    delivery_address: Optional[str] = None
    lines: List[IncomingLine] = field(default_factory=list)
    subtotal: Decimal = Decimal("0")
    tax: Decimal = Decimal("0")
    delivery_fee: Decimal = Decimal("0")
    discount: Decimal = Decimal("0")
    total: Decimal = Decimal("0")
    estimated_time: int = DEFAULT_ESTIMATED_TIME
    raw_payload: str = ""


def parse_payload(raw: Union[bytes, str]) -> Tuple[Dict[str, Any], str]:
    """Decode a webhook body into a JSON object and its verbatim text."""
    try:
        text = raw.decode("utf-8") if isinstance(raw, bytes) else raw
        payload = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise BadPayload("Invalid JSON payload") from e
    if not isinstance(payload, dict):
        raise BadPayload("Invalid JSON payload")
    return payload, text


def lookup(data: Dict[str, Any], paths: Sequence[str]) -> Any:
    """Return the value at the first dotted path that is present and non-empty."""
    for path in paths:
        value: Any = data
        for part in path.split("."):
            if not isinstance(value, dict) or part not in value:
                value = None
                break
            value = value[part]
        if value is not None and value != "":
            return value
    return None


def lookup_nonzero(data: Dict[str, Any], paths: Sequence[str]) -> Any:
    """Like ``lookup``, but a zero value falls through to the next path."""
    for path in paths:
        value = lookup(data, (path,))
        if value is not None and not (isinstance(value, (int, float)) and value == 0):
            return value
    return None


def to_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value).strip() or None


def _to_decimal(value: Any, field_name: str) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise BadPayload(f"{field_name} must be a number")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation as e:
        raise BadPayload(f"{field_name} must be a number, got {value!r}") from e
    if not amount.is_finite():
        raise BadPayload(f"{field_name} must be a number, got {value!r}")
    if amount < 0:
        raise BadPayload(f"{field_name} cannot be negative, got {value!r}")
    return amount


def to_amount(value: Any, field_name: str) -> Decimal:
    """Parse a money amount; missing means zero."""
    if value is None or value == "":
        return Decimal("0")
    amount = _to_decimal(value, field_name)
    if amount > MAX_AMOUNT:
        raise BadPayload(f"{field_name} is out of range, got {value!r}")
    return amount


def to_quantity(value: Any, field_name: str) -> int:
    """Parse a line quantity; missing or zero means one."""
    if not value:
        return 1
    amount = _to_decimal(value, field_name)
    if amount != amount.to_integral_value():
        raise BadPayload(f"{field_name} must be a whole number, got {value!r}")
    if amount > MAX_QUANTITY:
        raise BadPayload(f"{field_name} is out of range, got {value!r}")
    return int(amount) or 1


def to_minutes(value: Any) -> int:
    """Parse a delivery estimate; anything unusable means the default."""
    if not value or isinstance(value, bool):
        return DEFAULT_ESTIMATED_TIME
    try:
        minutes = Decimal(str(value).strip())
    except InvalidOperation:
        return DEFAULT_ESTIMATED_TIME
    if not minutes.is_finite() or minutes <= 0 or minutes > MAX_QUANTITY:
        return DEFAULT_ESTIMATED_TIME
    return int(minutes)


class PlatformAdapter(ABC):
    """Base interface for delivery platform payload adapters."""

    # Restaurant id lookup is shared by every platform
    restaurant_id_paths: Paths = ("restaurant_id", "restaurantId", "res_id")

    # Line-level paths, relative to one item object
    item_id_paths: Paths = ("id", "item_id")
    item_name_paths: Paths = ("name", "item_name")
    item_quantity_paths: Paths = ("quantity",)
    item_price_paths: Paths = ("price",)
    item_category_paths: Paths = ("category", "category_name")

    @property
    @abstractmethod
    def platform_name(self) -> str:
        """Return the platform name (e.g., 'swiggy', 'zomato')."""

    @property
    @abstractmethod
    def order_id_paths(self) -> Paths:
        """Paths of the platform's order id."""

    @property
    @abstractmethod
    def order_number_paths(self) -> Paths:
        """Paths of the customer-facing order number."""

    customer_name_paths: Paths = ("customer.name",)
    customer_phone_paths: Paths = ("customer.phone",)
    address_paths: Paths = ("delivery_address",)
    items_paths: Paths = ("items",)
    subtotal_paths: Paths = ("subtotal",)
    tax_paths: Paths = ("tax",)
    delivery_fee_paths: Paths = ("delivery_fee",)
    discount_paths: Paths = ("discount",)
    total_paths: Paths = ("total",)
    estimated_time_paths: Paths = ("estimated_time",)

    @property
    def signature_header(self) -> str:
        return f"X-{self.platform_name.capitalize()}-Signature"

    def restaurant_id(self, payload: Dict[str, Any]) -> Optional[str]:
        return to_text(lookup(payload, self.restaurant_id_paths))

    def normalize(self, raw: Union[bytes, str]) -> IncomingOrder:
        """Convert a raw webhook body into an ``IncomingOrder``.

        Raises:
            BadPayload: body is not a JSON object, lacks an order id, or
                carries unusable lines or amounts.
        """
        payload, text = parse_payload(raw)
        return self.normalize_payload(payload, text)

    def normalize_payload(self, payload: Dict[str, Any], text: str = "") -> IncomingOrder:
        order_id = to_text(lookup(payload, self.order_id_paths))
        if not order_id:
            raise BadPayload("Missing order ID", platform=self.platform_name)
        order_number = to_text(lookup(payload, self.order_number_paths)) or order_id

        raw_items = lookup(payload, self.items_paths)
        if raw_items is None:
            raw_items = []
        if not isinstance(raw_items, list):
            raise BadPayload("Order items must be a list", platform=self.platform_name)

        return IncomingOrder(
            platform=self.platform_name,
            external_order_id=order_id,
            external_order_number=order_number,
            restaurant_id=self.restaurant_id(payload),
            customer_name=to_text(lookup(payload, self.customer_name_paths)),
            customer_phone=to_text(lookup(payload, self.customer_phone_paths)),
            delivery_address=to_text(lookup(payload, self.address_paths)),
            lines=[self._line(index, item) for index, item in enumerate(raw_items)],
            subtotal=to_amount(lookup(payload, self.subtotal_paths), "subtotal"),
            tax=to_amount(lookup(payload, self.tax_paths), "tax"),
            delivery_fee=to_amount(lookup(payload, self.delivery_fee_paths), "delivery_fee"),
            discount=to_amount(lookup(payload, self.discount_paths), "discount"),
            total=to_amount(lookup(payload, self.total_paths), "total"),
            estimated_time=to_minutes(lookup(payload, self.estimated_time_paths)),
            raw_payload=text or json.dumps(payload),
        )

    def _line(self, index: int, item: Any) -> IncomingLine:
        if not isinstance(item, dict):
            raise BadPayload(f"Item {index} is not an object", platform=self.platform_name)
        item_id = to_text(lookup(item, self.item_id_paths))
        if not item_id:
            raise BadPayload(f"Item {index} has no item ID", platform=self.platform_name)
        return IncomingLine(
            external_item_id=item_id,
            name=to_text(lookup(item, self.item_name_paths)) or "Unknown item",
            quantity=to_quantity(lookup(item, self.item_quantity_paths), f"items[{index}].quantity"),
            unit_price=to_amount(lookup_nonzero(item, self.item_price_paths), f"items[{index}].price"),
            category=to_text(lookup(item, self.item_category_paths)),
        )

    def verify_signature(self, payload: bytes, signature: Optional[str], secret: Optional[str]) -> bool:
        """Check an HMAC-SHA256 hex signature of the raw body."""
        if not secret or not signature:
            return False
        expected = hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()
        return hmac.compare_digest(expected, signature.strip().lower())
