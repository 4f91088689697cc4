"""create stock ledger tables

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261019_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=True, server_default=sa.func.now())


def upgrade() -> None:
    op.create_table(
        "products",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("code", sa.String(length=30), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="1"),
        sa.Column("stock_capacity", sa.Integer(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code"),
    )
    op.create_index("ix_products_active_created_at", "products", ["is_active", "created_at"], unique=False)

    op.create_table(
        "locations",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("code", sa.String(length=30), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("kind", sa.String(length=20), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="1"),
        sa.Column("default_capacity", sa.Integer(), nullable=True),
        sa.Column("default_min_threshold", sa.Integer(), nullable=False, server_default="0"),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code"),
    )

    op.create_table(
        "batches",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("product_id", sa.String(length=36), nullable=False),
        sa.Column("batch_code", sa.String(length=40), nullable=False),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        sa.Column("acquisition_date", sa.Date(), nullable=False),
        sa.Column("quantity_received", sa.Integer(), nullable=False),
        sa.Column("unit_sell_price", sa.Numeric(12, 2), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("product_id", "batch_code", name="uq_batches_product_batch_code"),
        sa.CheckConstraint("quantity_received > 0", name="ck_batches_quantity_received_positive"),
    )
    op.create_index("ix_batches_product_id", "batches", ["product_id"], unique=False)
    op.create_index(
        "ix_batches_product_expiry_acquisition",
        "batches",
        ["product_id", "expiry_date", "acquisition_date"],
        unique=False,
    )

    op.create_table(
        "location_cells",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("batch_id", sa.String(length=36), nullable=False),
        sa.Column("location_id", sa.String(length=36), nullable=False),
        sa.Column("product_id", sa.String(length=36), nullable=False),
        sa.Column("current_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("min_threshold", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("capacity", sa.Integer(), nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["batch_id"], ["batches.id"]),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("batch_id", "location_id", name="uq_location_cells_batch_location"),
        sa.CheckConstraint("current_quantity >= 0", name="ck_location_cells_quantity_non_negative"),
    )
    op.create_index("ix_location_cells_batch_id", "location_cells", ["batch_id"], unique=False)
    op.create_index("ix_location_cells_location_id", "location_cells", ["location_id"], unique=False)
    op.create_index("ix_location_cells_product_id", "location_cells", ["product_id"], unique=False)
    op.create_index(
        "ix_location_cells_product_location",
        "location_cells",
        ["product_id", "location_id"],
        unique=False,
    )

    op.create_table(
        "stock_movements",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("batch_id", sa.String(length=36), nullable=False),
        sa.Column("product_id", sa.String(length=36), nullable=False),
        sa.Column("from_location_id", sa.String(length=36), nullable=True),
        sa.Column("to_location_id", sa.String(length=36), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("movement_type", sa.String(length=30), nullable=False),
        sa.Column("actor", sa.String(length=120), nullable=False),
        sa.Column("reference_id", sa.String(length=36), nullable=True),
        sa.Column("note", sa.String(length=255), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["batch_id"], ["batches.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.ForeignKeyConstraint(["from_location_id"], ["locations.id"]),
        sa.ForeignKeyConstraint(["to_location_id"], ["locations.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_stock_movements_batch_id", "stock_movements", ["batch_id"], unique=False)
    op.create_index("ix_stock_movements_product_id", "stock_movements", ["product_id"], unique=False)
    op.create_index(
        "ix_stock_movements_product_created_at",
        "stock_movements",
        ["product_id", "created_at"],
        unique=False,
    )
    op.create_index("ix_stock_movements_reference_id", "stock_movements", ["reference_id"], unique=False)

    op.create_table(
        "reorder_alerts",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("product_id", sa.String(length=36), nullable=False),
        sa.Column("location_id", sa.String(length=36), nullable=False),
        sa.Column("observed_quantity", sa.Integer(), nullable=False),
        sa.Column("alert_kind", sa.String(length=30), nullable=False),
        sa.Column("threshold", sa.Integer(), nullable=False),
        sa.Column("velocity_class", sa.String(length=10), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_reorder_alerts_product_id", "reorder_alerts", ["product_id"], unique=False)
    op.create_index("ix_reorder_alerts_location_id", "reorder_alerts", ["location_id"], unique=False)
    op.create_index(
        "ix_reorder_alerts_product_location_created_at",
        "reorder_alerts",
        ["product_id", "location_id", "created_at"],
        unique=False,
    )

    op.create_table(
        "sale_lines",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("product_id", sa.String(length=36), nullable=False),
        sa.Column("transaction_ref", sa.String(length=60), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("sold_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_sale_lines_product_id", "sale_lines", ["product_id"], unique=False)
    op.create_index("ix_sale_lines_product_sold_at", "sale_lines", ["product_id", "sold_at"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_sale_lines_product_sold_at", table_name="sale_lines")
    op.drop_index("ix_sale_lines_product_id", table_name="sale_lines")
    op.drop_table("sale_lines")

    op.drop_index("ix_reorder_alerts_product_location_created_at", table_name="reorder_alerts")
    op.drop_index("ix_reorder_alerts_location_id", table_name="reorder_alerts")
    op.drop_index("ix_reorder_alerts_product_id", table_name="reorder_alerts")
    op.drop_table("reorder_alerts")

    op.drop_index("ix_stock_movements_reference_id", table_name="stock_movements")
    op.drop_index("ix_stock_movements_product_created_at", table_name="stock_movements")
    op.drop_index("ix_stock_movements_product_id", table_name="stock_movements")
    op.drop_index("ix_stock_movements_batch_id", table_name="stock_movements")
    op.drop_table("stock_movements")

    op.drop_index("ix_location_cells_product_location", table_name="location_cells")
    op.drop_index("ix_location_cells_product_id", table_name="location_cells")
    op.drop_index("ix_location_cells_location_id", table_name="location_cells")
    op.drop_index("ix_location_cells_batch_id", table_name="location_cells")
    op.drop_table("location_cells")

    op.drop_index("ix_batches_product_expiry_acquisition", table_name="batches")
    op.drop_index("ix_batches_product_id", table_name="batches")
    op.drop_table("batches")

    op.drop_table("locations")

    op.drop_index("ix_products_active_created_at", table_name="products")
    op.drop_table("products")
