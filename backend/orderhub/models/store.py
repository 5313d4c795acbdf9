"""Store catalog models: stores, kitchen counters, menu items and variations.

These tables are owned by the menu management side of the POS; the
ingestion engine only reads them.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Integer, JSON, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from orderhub.db.base import Base, TimestampMixin
from orderhub.models.validators import non_negative, validate_price_map


class Store(Base, TimestampMixin):
    """A restaurant outlet."""

    __tablename__ = "stores"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    # IANA zone name; falls back to the configured platform zone
    timezone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    counters: Mapped[list["Counter"]] = relationship("Counter", back_populates="store")
    menu_items: Mapped[list["MenuItem"]] = relationship("MenuItem", back_populates="store")


class Counter(Base, TimestampMixin):
    """Kitchen counter (station) that receives routed order items."""

    __tablename__ = "counters"

    id: Mapped[int] = mapped_column(primary_key=True)
    store_id: Mapped[int] = mapped_column(
        ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    printer_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    store: Mapped["Store"] = relationship("Store", back_populates="counters")


class MenuItem(Base, TimestampMixin):
    """POS menu item with optional per-platform price overrides."""

    __tablename__ = "menu_items"

    id: Mapped[int] = mapped_column(primary_key=True)
    store_id: Mapped[int] = mapped_column(
        ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    category_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    # e.g. {"swiggy": "150.00", "zomato": 145}
    platform_prices: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    store: Mapped["Store"] = relationship("Store", back_populates="menu_items")
    variations: Mapped[list["ItemVariation"]] = relationship(
        "ItemVariation", back_populates="menu_item", cascade="all, delete-orphan",
        order_by="ItemVariation.sort_order",
    )

    @validates("price")
    def _validate_price(self, key, value):
        return non_negative(key, value)

    @validates("platform_prices")
    def _validate_platform_prices(self, key, value):
        return validate_price_map(key, value)

    def price_for_platform(self, platform: str) -> Optional[Decimal]:
        """Return the override price configured for *platform*, if any."""
        if not self.platform_prices:
            return None
        raw = self.platform_prices.get(platform)
        if raw is None or raw == "":
            return None
        try:
            return Decimal(str(raw))
        except InvalidOperation:
            return None


class ItemVariation(Base, TimestampMixin):
    """Size/portion variation of a menu item."""

    __tablename__ = "item_variations"

    id: Mapped[int] = mapped_column(primary_key=True)
    menu_item_id: Mapped[int] = mapped_column(
        ForeignKey("menu_items.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    menu_item: Mapped["MenuItem"] = relationship("MenuItem", back_populates="variations")

    @validates("price")
    def _validate_price(self, key, value):
        return non_negative(key, value)
