"""iiko integration schema

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


def upgrade() -> None:
    # Connection settings (first row is canonical)
    op.create_table(
        "iiko_settings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("server_url", sa.String(500), nullable=False),
        sa.Column("login", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(64), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("last_sync_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # Imported sales lines, amounts net of discount
    op.create_table(
        "iiko_sales",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("dish_id", sa.String(100), nullable=False, server_default=""),
        sa.Column("dish_name", sa.String(255), nullable=False, server_default=""),
        sa.Column("dish_code", sa.String(100), nullable=True),
        sa.Column("dish_category", sa.String(255), nullable=False, server_default=""),
        sa.Column("dish_category_id", sa.String(100), nullable=True),
        sa.Column("dish_group", sa.String(255), nullable=True),
        sa.Column("dish_group_id", sa.String(100), nullable=True),
        sa.Column("quantity", sa.Numeric(12, 3), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("discount_sum", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("order_num", sa.String(100), nullable=False, server_default=""),
        sa.Column("open_time", sa.DateTime(), nullable=False),
        sa.Column("department_id", sa.String(100), nullable=True),
        sa.Column("department_name", sa.String(255), nullable=True),
        sa.Column("imported_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_index("ix_iiko_sales_open_time", "iiko_sales", ["open_time"])
    op.create_index("ix_iiko_sales_dish_category", "iiko_sales", ["dish_category"])
    op.create_index("ix_iiko_sales_order_num", "iiko_sales", ["order_num"])


def downgrade() -> None:
    op.drop_index("ix_iiko_sales_order_num", table_name="iiko_sales")
    op.drop_index("ix_iiko_sales_dish_category", table_name="iiko_sales")
    op.drop_index("ix_iiko_sales_open_time", table_name="iiko_sales")
    op.drop_table("iiko_sales")
    op.drop_table("iiko_settings")
