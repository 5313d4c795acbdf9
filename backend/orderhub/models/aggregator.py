"""Delivery aggregator models - Swiggy/Zomato/Rapido integrations.

An ``Aggregator`` is a store's connection to one delivery platform. Item
and category mappings translate the platform's catalog identifiers into
POS menu items and kitchen counters. ``AggregatorOrder`` is the order as
received, before (or instead of) becoming a POS order.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean, DateTime, Enum as SQLEnum, ForeignKey, Index, Integer, Numeric,
    String, Text, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from orderhub.db.base import Base, TimestampMixin
from orderhub.models.validators import non_negative, positive


class Platform(str, Enum):
    SWIGGY = "swiggy"
    ZOMATO = "zomato"
    RAPIDO = "rapido"


class AggregatorStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ERROR = "error"


class MappingKind(str, Enum):
    ITEM = "item"
    VARIATION = "variation"


class MappingStatus(str, Enum):
    MAPPED = "mapped"
    UNMAPPED = "unmapped"
    MANUAL = "manual"


class AggregatorOrderStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    MAPPED_TO_POS = "mapped_to_pos"
    FAILED = "failed"


class Aggregator(Base, TimestampMixin):
    """A store's configured connection to one delivery platform."""

    __tablename__ = "aggregators"
    __table_args__ = (
        UniqueConstraint("store_id", "platform", name="uq_aggregator_store_platform"),
        # Webhooks are routed by (platform, outlet id)
        UniqueConstraint("platform", "restaurant_id", name="uq_aggregator_platform_restaurant"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    store_id: Mapped[int] = mapped_column(
        ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Free-form so rows written by other tools keep working; the API only
    # accepts Platform values.
    platform: Mapped[str] = mapped_column(String(20), nullable=False)
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    status: Mapped[AggregatorStatus] = mapped_column(
        SQLEnum(AggregatorStatus), default=AggregatorStatus.INACTIVE, nullable=False
    )

    # Credentials
    api_key: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    api_secret: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    restaurant_id: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)  # Platform's outlet id
    webhook_secret: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    webhook_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    last_sync_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    item_mappings: Mapped[list["AggregatorItemMapping"]] = relationship(
        "AggregatorItemMapping", back_populates="aggregator", cascade="all, delete-orphan"
    )
    category_mappings: Mapped[list["AggregatorCategoryMapping"]] = relationship(
        "AggregatorCategoryMapping", back_populates="aggregator", cascade="all, delete-orphan"
    )
    orders: Mapped[list["AggregatorOrder"]] = relationship(
        "AggregatorOrder", back_populates="aggregator"
    )

    @property
    def has_webhook_secret(self) -> bool:
        return bool(self.webhook_secret)


class AggregatorItemMapping(Base, TimestampMixin):
    """Links a platform item id to a POS menu item (and optionally a variation)."""

    __tablename__ = "aggregator_item_mappings"
    __table_args__ = (
        UniqueConstraint("aggregator_id", "external_item_id", name="uq_item_mapping_external"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    aggregator_id: Mapped[int] = mapped_column(
        ForeignKey("aggregators.id", ondelete="CASCADE"), nullable=False, index=True
    )
    store_id: Mapped[int] = mapped_column(
        ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True
    )
    external_item_id: Mapped[str] = mapped_column(String(200), nullable=False)
    external_item_name: Mapped[str] = mapped_column(String(300), nullable=False)
    external_category: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    pos_item_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("menu_items.id", ondelete="SET NULL"), nullable=True, index=True
    )
    pos_variation_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("item_variations.id", ondelete="SET NULL"), nullable=True
    )
    mapping_kind: Mapped[MappingKind] = mapped_column(
        SQLEnum(MappingKind), default=MappingKind.ITEM, nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    aggregator: Mapped["Aggregator"] = relationship("Aggregator", back_populates="item_mappings")
    pos_item: Mapped[Optional["MenuItem"]] = relationship("MenuItem")
    pos_variation: Mapped[Optional["ItemVariation"]] = relationship("ItemVariation")

    @property
    def pos_item_name(self) -> Optional[str]:
        return self.pos_item.name if self.pos_item else None

    @property
    def pos_variation_name(self) -> Optional[str]:
        return self.pos_variation.name if self.pos_variation else None


class AggregatorCategoryMapping(Base, TimestampMixin):
    """Links a platform category id to a kitchen counter."""

    __tablename__ = "aggregator_category_mappings"
    __table_args__ = (
        UniqueConstraint("aggregator_id", "external_category_id", name="uq_category_mapping_external"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    aggregator_id: Mapped[int] = mapped_column(
        ForeignKey("aggregators.id", ondelete="CASCADE"), nullable=False, index=True
    )
    store_id: Mapped[int] = mapped_column(
        ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True
    )
    external_category_id: Mapped[str] = mapped_column(String(200), nullable=False)
    external_category_name: Mapped[str] = mapped_column(String(200), nullable=False)
    counter_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("counters.id", ondelete="SET NULL"), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    aggregator: Mapped["Aggregator"] = relationship("Aggregator", back_populates="category_mappings")
    counter: Mapped[Optional["Counter"]] = relationship("Counter")

    @property
    def counter_name(self) -> Optional[str]:
        return self.counter.name if self.counter else None


class AggregatorOrder(Base, TimestampMixin):
    """An order as received from a delivery platform."""

    __tablename__ = "aggregator_orders"
    __table_args__ = (
        UniqueConstraint("aggregator_id", "external_order_id", name="uq_aggregator_order_external"),
        Index("idx_aggregator_order_store_status", "store_id", "status"),
        Index("idx_aggregator_order_store_created", "store_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    store_id: Mapped[int] = mapped_column(
        ForeignKey("stores.id", ondelete="CASCADE"), nullable=False
    )
    aggregator_id: Mapped[int] = mapped_column(
        ForeignKey("aggregators.id"), nullable=False, index=True
    )
    platform: Mapped[str] = mapped_column(String(20), nullable=False)

    # Platform identifiers
    external_order_id: Mapped[str] = mapped_column(String(200), nullable=False)
    external_order_number: Mapped[str] = mapped_column(String(100), nullable=False)

    status: Mapped[AggregatorOrderStatus] = mapped_column(
        SQLEnum(AggregatorOrderStatus), default=AggregatorOrderStatus.PENDING, nullable=False
    )
    pos_order_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("orders.id", ondelete="SET NULL"), nullable=True
    )

    # Customer info (from platform)
    customer_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    customer_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    delivery_address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Totals
    subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    tax: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    delivery_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    discount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    total: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    estimated_time: Mapped[int] = mapped_column(Integer, default=30, nullable=False)  # minutes

    raw_payload: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    aggregator: Mapped["Aggregator"] = relationship("Aggregator", back_populates="orders")
    pos_order: Mapped[Optional["Order"]] = relationship("Order")
    items: Mapped[list["AggregatorOrderItem"]] = relationship(
        "AggregatorOrderItem", back_populates="order", cascade="all, delete-orphan",
        order_by="AggregatorOrderItem.line_index",
    )

    @validates("subtotal", "tax", "delivery_fee", "discount", "total")
    def _validate_amounts(self, key, value):
        return non_negative(key, value)

    @property
    def unmapped_count(self) -> int:
        return sum(1 for line in self.items if line.mapping_status == MappingStatus.UNMAPPED)


class AggregatorOrderItem(Base):
    """One line of an aggregator order, in the order the platform sent it."""

    __tablename__ = "aggregator_order_items"
    __table_args__ = (
        UniqueConstraint("order_id", "line_index", name="uq_aggregator_order_line"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[int] = mapped_column(
        ForeignKey("aggregator_orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    line_index: Mapped[int] = mapped_column(Integer, nullable=False)

    external_item_id: Mapped[str] = mapped_column(String(200), nullable=False)
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    external_category: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    pos_item_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("menu_items.id", ondelete="SET NULL"), nullable=True
    )
    pos_variation_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("item_variations.id", ondelete="SET NULL"), nullable=True
    )
    mapping_status: Mapped[MappingStatus] = mapped_column(
        SQLEnum(MappingStatus), default=MappingStatus.UNMAPPED, nullable=False
    )

    order: Mapped["AggregatorOrder"] = relationship("AggregatorOrder", back_populates="items")
    pos_item: Mapped[Optional["MenuItem"]] = relationship("MenuItem")
    pos_variation: Mapped[Optional["ItemVariation"]] = relationship("ItemVariation")

    @validates("quantity")
    def _validate_quantity(self, key, value):
        return positive(key, value)

    @validates("price")
    def _validate_price(self, key, value):
        return non_negative(key, value)

    @property
    def pos_item_name(self) -> Optional[str]:
        return self.pos_item.name if self.pos_item else None

    @property
    def pos_variation_name(self) -> Optional[str]:
        return self.pos_variation.name if self.pos_variation else None


# Forward references
from orderhub.models.store import Counter, ItemVariation, MenuItem  # noqa: E402
from orderhub.models.order import Order  # noqa: E402
