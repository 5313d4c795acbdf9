"""SQLAlchemy models."""

from orderhub.models.store import Store, Counter, MenuItem, ItemVariation
from orderhub.models.order import (
    Order,
    OrderItem,
    TicketSequence,
    OrderType,
    OrderStatus,
    PaymentStatus,
    OrderItemStatus,
)
from orderhub.models.aggregator import (
    Aggregator,
    AggregatorItemMapping,
    AggregatorCategoryMapping,
    AggregatorOrder,
    AggregatorOrderItem,
    Platform,
    AggregatorStatus,
    AggregatorOrderStatus,
    MappingKind,
    MappingStatus,
)

__all__ = [
    "Store",
    "Counter",
    "MenuItem",
    "ItemVariation",
    "Order",
    "OrderItem",
    "TicketSequence",
    "OrderType",
    "OrderStatus",
    "PaymentStatus",
    "OrderItemStatus",
    "Aggregator",
    "AggregatorItemMapping",
    "AggregatorCategoryMapping",
    "AggregatorOrder",
    "AggregatorOrderItem",
    "Platform",
    "AggregatorStatus",
    "AggregatorOrderStatus",
    "MappingKind",
    "MappingStatus",
]
