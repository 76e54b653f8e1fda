"""card inventory and purchase orders

Revision ID: 20261019_01
Revises:
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "20261019_01"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _table_exists(inspector: sa.Inspector, table_name: str) -> bool:
    return table_name in inspector.get_table_names()


def _create_card_inventory() -> None:
    op.create_table(
        "card_inventory",
        sa.Column("card_number", sa.Integer(), primary_key=True, autoincrement=False, nullable=False),
        sa.Column("numbers", sa.JSON(), nullable=False),
        sa.Column("image_url", sa.String(length=1024), nullable=True),
        sa.Column("image_filename", sa.String(length=255), nullable=True),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("reserved_by", sa.String(length=64), nullable=True),
        sa.Column("reserved_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sold_to", sa.String(length=64), nullable=True),
        sa.Column("sold_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("card_number > 0", name="ck_card_inventory_card_number_positive"),
        # A card is never reserved and sold at the same time.
        sa.CheckConstraint(
            "sold_to IS NULL OR (reserved_by IS NULL AND reserved_until IS NULL)",
            name="ck_card_inventory_single_state",
        ),
    )
    op.create_index("ix_card_inventory_is_available", "card_inventory", ["is_available"])
    op.create_index("ix_card_inventory_reserved_by", "card_inventory", ["reserved_by"])
    op.create_index("ix_card_inventory_reserved_until", "card_inventory", ["reserved_until"])
    op.create_index("ix_card_inventory_sold_to", "card_inventory", ["sold_to"])


def _create_purchase_orders() -> None:
    op.create_table(
        "purchase_orders",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("buyer_id", sa.String(length=64), nullable=False),
        sa.Column("buyer_name", sa.String(length=255), nullable=False),
        sa.Column("buyer_phone", sa.String(length=64), nullable=False),
        sa.Column("payment_method", sa.String(length=50), nullable=False),
        sa.Column("transaction_id", sa.String(length=255), nullable=True),
        sa.Column("reference_number", sa.String(length=255), nullable=True),
        sa.Column("sender_phone", sa.String(length=64), nullable=True),
        sa.Column("sender_name", sa.String(length=255), nullable=True),
        sa.Column("card_numbers", sa.JSON(), nullable=False),
        sa.Column("cart_items", sa.JSON(), nullable=False),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("verified_by", sa.String(length=255), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_purchase_orders_id", "purchase_orders", ["id"])
    op.create_index("ix_purchase_orders_buyer_id", "purchase_orders", ["buyer_id"])


def upgrade() -> None:
    inspector = sa.inspect(op.get_bind())
    if not _table_exists(inspector, "card_inventory"):
        _create_card_inventory()
    if not _table_exists(inspector, "purchase_orders"):
        _create_purchase_orders()


def downgrade() -> None:
    op.drop_index("ix_purchase_orders_buyer_id", table_name="purchase_orders")
    op.drop_index("ix_purchase_orders_id", table_name="purchase_orders")
    op.drop_table("purchase_orders")
    op.drop_index("ix_card_inventory_sold_to", table_name="card_inventory")
    op.drop_index("ix_card_inventory_reserved_until", table_name="card_inventory")
    op.drop_index("ix_card_inventory_reserved_by", table_name="card_inventory")
    op.drop_index("ix_card_inventory_is_available", table_name="card_inventory")
    op.drop_table("card_inventory")
