"""Aggregator ingestion schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def _money(name: str):
    return sa.Column(name, sa.Numeric(10, 2), nullable=False, server_default="0")


def upgrade() -> None:
    # Store catalog (read by ingestion, owned by menu management)
    op.create_table(
        "stores",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("timezone", sa.String(50), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "counters",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("store_id", sa.Integer(), sa.ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("printer_id", sa.String(100), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "menu_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("store_id", sa.Integer(), sa.ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("name", sa.String(200), nullable=False, index=True),
        sa.Column("category_name", sa.String(100), nullable=True),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("platform_prices", sa.JSON(), nullable=True),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "item_variations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("menu_item_id", sa.Integer(), sa.ForeignKey("menu_items.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    # POS order ledger
    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("store_id", sa.Integer(), sa.ForeignKey("stores.id", ondelete="CASCADE"), nullable=False),
        sa.Column("order_number", sa.String(100), nullable=False, index=True),
        sa.Column("token_number", sa.Integer(), nullable=False),
        sa.Column("order_type", sa.Enum(
            "DINE_IN", "TAKEAWAY", "DELIVERY_SWIGGY", "DELIVERY_ZOMATO", "DELIVERY_RAPIDO", "DELIVERY_DIRECT",
            name="ordertype",
        ), nullable=False),
        sa.Column("status", sa.Enum(
            "PENDING", "CONFIRMED", "COOKING", "READY", "SERVED", "COMPLETED", "CANCELLED",
            name="orderstatus",
        ), nullable=False),
        sa.Column("payment_status", sa.Enum("PENDING", "PAID", "REFUNDED", name="paymentstatus"), nullable=False),
        sa.Column("customer_name", sa.String(200), nullable=True),
        sa.Column("customer_phone", sa.String(50), nullable=True),
        sa.Column("customer_address", sa.Text(), nullable=True),
        sa.Column("aggregator_order_ref", sa.String(200), nullable=True),
        sa.Column("aggregator_platform", sa.String(20), nullable=True),
        _money("subtotal"),
        _money("tax"),
        _money("delivery_fee"),
        _money("discount"),
        _money("total"),
        sa.Column("item_count", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index("idx_order_store_created", "orders", ["store_id", "created_at"])

    op.create_table(
        "order_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("menu_item_id", sa.Integer(), sa.ForeignKey("menu_items.id"), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("variation_id", sa.Integer(), sa.ForeignKey("item_variations.id", ondelete="SET NULL"), nullable=True),
        sa.Column("variation_name", sa.String(100), nullable=True),
        sa.Column("variation_price", sa.Numeric(10, 2), nullable=True),
        sa.Column("counter_id", sa.Integer(), sa.ForeignKey("counters.id", ondelete="SET NULL"), nullable=True, index=True),
        sa.Column("status", sa.Enum("PENDING", "COOKING", "READY", "SERVED", name="orderitemstatus"), nullable=False),
        sa.Column("item_total", sa.Numeric(10, 2), nullable=False),
    )

    op.create_table(
        "ticket_sequences",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("store_id", sa.Integer(), sa.ForeignKey("stores.id", ondelete="CASCADE"), nullable=False),
        sa.Column("business_day", sa.Date(), nullable=False),
        sa.Column("last_number", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("store_id", "business_day", name="uq_ticket_sequence_store_day"),
    )

    # Aggregators and catalog mappings
    op.create_table(
        "aggregators",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("store_id", sa.Integer(), sa.ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("platform", sa.String(20), nullable=False),
        sa.Column("is_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("status", sa.Enum("ACTIVE", "INACTIVE", "ERROR", name="aggregatorstatus"), nullable=False),
        sa.Column("api_key", sa.String(500), nullable=True),
        sa.Column("api_secret", sa.String(500), nullable=True),
        sa.Column("restaurant_id", sa.String(200), nullable=True),
        sa.Column("webhook_secret", sa.String(200), nullable=True),
        sa.Column("webhook_url", sa.String(500), nullable=True),
        sa.Column("last_sync_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("store_id", "platform", name="uq_aggregator_store_platform"),
        sa.UniqueConstraint("platform", "restaurant_id", name="uq_aggregator_platform_restaurant"),
    )

    op.create_table(
        "aggregator_item_mappings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("aggregator_id", sa.Integer(), sa.ForeignKey("aggregators.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("store_id", sa.Integer(), sa.ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("external_item_id", sa.String(200), nullable=False),
        sa.Column("external_item_name", sa.String(300), nullable=False),
        sa.Column("external_category", sa.String(200), nullable=True),
        sa.Column("pos_item_id", sa.Integer(), sa.ForeignKey("menu_items.id", ondelete="SET NULL"), nullable=True, index=True),
        sa.Column("pos_variation_id", sa.Integer(), sa.ForeignKey("item_variations.id", ondelete="SET NULL"), nullable=True),
        sa.Column("mapping_kind", sa.Enum("ITEM", "VARIATION", name="mappingkind"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint("aggregator_id", "external_item_id", name="uq_item_mapping_external"),
    )

    op.create_table(
        "aggregator_category_mappings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("aggregator_id", sa.Integer(), sa.ForeignKey("aggregators.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("store_id", sa.Integer(), sa.ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("external_category_id", sa.String(200), nullable=False),
        sa.Column("external_category_name", sa.String(200), nullable=False),
        sa.Column("counter_id", sa.Integer(), sa.ForeignKey("counters.id", ondelete="SET NULL"), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint("aggregator_id", "external_category_id", name="uq_category_mapping_external"),
    )

    # Orders as received from the platforms
    op.create_table(
        "aggregator_orders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("store_id", sa.Integer(), sa.ForeignKey("stores.id", ondelete="CASCADE"), nullable=False),
        sa.Column("aggregator_id", sa.Integer(), sa.ForeignKey("aggregators.id"), nullable=False, index=True),
        sa.Column("platform", sa.String(20), nullable=False),
        sa.Column("external_order_id", sa.String(200), nullable=False),
        sa.Column("external_order_number", sa.String(100), nullable=False),
        sa.Column("status", sa.Enum(
            "PENDING", "ACCEPTED", "REJECTED", "MAPPED_TO_POS", "FAILED",
            name="aggregatororderstatus",
        ), nullable=False),
        sa.Column("pos_order_id", sa.Integer(), sa.ForeignKey("orders.id", ondelete="SET NULL"), nullable=True),
        sa.Column("customer_name", sa.String(200), nullable=True),
        sa.Column("customer_phone", sa.String(50), nullable=True),
        sa.Column("delivery_address", sa.Text(), nullable=True),
        _money("subtotal"),
        _money("tax"),
        _money("delivery_fee"),
        _money("discount"),
        _money("total"),
        sa.Column("estimated_time", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("raw_payload", sa.Text(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("aggregator_id", "external_order_id", name="uq_aggregator_order_external"),
    )
    op.create_index("idx_aggregator_order_store_status", "aggregator_orders", ["store_id", "status"])
    op.create_index("idx_aggregator_order_store_created", "aggregator_orders", ["store_id", "created_at"])

    op.create_table(
        "aggregator_order_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("aggregator_orders.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("line_index", sa.Integer(), nullable=False),
        sa.Column("external_item_id", sa.String(200), nullable=False),
        sa.Column("name", sa.String(300), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("price", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("external_category", sa.String(200), nullable=True),
        sa.Column("pos_item_id", sa.Integer(), sa.ForeignKey("menu_items.id", ondelete="SET NULL"), nullable=True),
        sa.Column("pos_variation_id", sa.Integer(), sa.ForeignKey("item_variations.id", ondelete="SET NULL"), nullable=True),
        sa.Column("mapping_status", sa.Enum("MAPPED", "UNMAPPED", "MANUAL", name="mappingstatus"), nullable=False),
        sa.UniqueConstraint("order_id", "line_index", name="uq_aggregator_order_line"),
    )


def downgrade() -> None:
    op.drop_table("aggregator_order_items")
    op.drop_index("idx_aggregator_order_store_created", table_name="aggregator_orders")
    op.drop_index("idx_aggregator_order_store_status", table_name="aggregator_orders")
    op.drop_table("aggregator_orders")
    op.drop_table("aggregator_category_mappings")
    op.drop_table("aggregator_item_mappings")
    op.drop_table("aggregators")
    op.drop_table("ticket_sequences")
    op.drop_table("order_items")
    op.drop_index("idx_order_store_created", table_name="orders")
    op.drop_table("orders")
    op.drop_table("item_variations")
    op.drop_table("menu_items")
    op.drop_table("counters")
    op.drop_table("stores")
