"""POS order ledger models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Date, Enum as SQLEnum, ForeignKey, Index, Integer, Numeric, String, Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from orderhub.db.base import Base, TimestampMixin
from orderhub.models.validators import non_negative, positive


class OrderType(str, Enum):
    DINE_IN = "dine_in"
    TAKEAWAY = "takeaway"
    DELIVERY_SWIGGY = "delivery_swiggy"
    DELIVERY_ZOMATO = "delivery_zomato"
    DELIVERY_RAPIDO = "delivery_rapido"
    DELIVERY_DIRECT = "delivery_direct"


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COOKING = "cooking"
    READY = "ready"
    SERVED = "served"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


class OrderItemStatus(str, Enum):
    PENDING = "pending"
    COOKING = "cooking"
    READY = "ready"
    SERVED = "served"


class Order(Base, TimestampMixin):
    """A confirmed, kitchen-facing order in the restaurant's own ledger."""

    __tablename__ = "orders"
    __table_args__ = (
        Index("idx_order_store_created", "store_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    store_id: Mapped[int] = mapped_column(
        ForeignKey("stores.id", ondelete="CASCADE"), nullable=False
    )
    order_number: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    token_number: Mapped[int] = mapped_column(Integer, nullable=False)
    order_type: Mapped[OrderType] = mapped_column(SQLEnum(OrderType), nullable=False)
    status: Mapped[OrderStatus] = mapped_column(
        SQLEnum(OrderStatus), default=OrderStatus.PENDING, nullable=False
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        SQLEnum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False
    )

    customer_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    customer_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    customer_address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Aggregator reference
    aggregator_order_ref: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    aggregator_platform: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    tax: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    delivery_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    discount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    total: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    item_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem", back_populates="order", cascade="all, delete-orphan"
    )

    @validates("subtotal", "tax", "delivery_fee", "discount", "total")
    def _validate_amounts(self, key, value):
        return non_negative(key, value)

    @validates("token_number")
    def _validate_token(self, key, value):
        return positive(key, value)


class OrderItem(Base):
    """One line of a POS order."""

    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[int] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    menu_item_id: Mapped[int] = mapped_column(ForeignKey("menu_items.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    variation_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("item_variations.id", ondelete="SET NULL"), nullable=True
    )
    variation_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    variation_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    counter_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("counters.id", ondelete="SET NULL"), nullable=True, index=True
    )
    status: Mapped[OrderItemStatus] = mapped_column(
        SQLEnum(OrderItemStatus), default=OrderItemStatus.PENDING, nullable=False
    )
    item_total: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    order: Mapped["Order"] = relationship("Order", back_populates="items")

    @validates("quantity")
    def _validate_quantity(self, key, value):
        return positive(key, value)

    @validates("price", "item_total", "variation_price")
    def _validate_amounts(self, key, value):
        return non_negative(key, value)


class TicketSequence(Base):
    """Last ticket number issued per store and business day."""

    __tablename__ = "ticket_sequences"
    __table_args__ = (
        UniqueConstraint("store_id", "business_day", name="uq_ticket_sequence_store_day"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    store_id: Mapped[int] = mapped_column(
        ForeignKey("stores.id", ondelete="CASCADE"), nullable=False
    )
    business_day: Mapped[date] = mapped_column(Date, nullable=False)
    last_number: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
