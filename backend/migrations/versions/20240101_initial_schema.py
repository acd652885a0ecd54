"""Initial cafe schema: catalog, stock ledger, orders, payroll

Revision ID: 20240101_initial
Revises:
Create Date: 2024-01-01
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20240101_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "ingredients",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("unit", sa.String(16), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", name="uq_ingredients_name"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_ingredients_is_active", "ingredients", ["is_active"], unique=False)

    op.create_table(
        "menu_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", name="uq_menu_items_name"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_menu_items_is_active", "menu_items", ["is_active"], unique=False)

    op.create_table(
        "recipe_lines",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("ingredient_id", sa.Integer(), nullable=False),
        sa.Column("required_quantity", sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(["item_id"], ["menu_items.id"]),
        sa.ForeignKeyConstraint(["ingredient_id"], ["ingredients.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("item_id", "ingredient_id", name="uq_recipe_lines_item_ingredient"),
        sa.CheckConstraint("required_quantity > 0", name="ck_recipe_lines_required_positive"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("recipe_lines", schema=None) as batch_op:
        batch_op.create_index("ix_recipe_lines_item_id", ["item_id"], unique=False)
        batch_op.create_index("ix_recipe_lines_ingredient_id", ["ingredient_id"], unique=False)

    op.create_table(
        "stock_levels",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("ingredient_id", sa.Integer(), nullable=False),
        sa.Column("current_quantity", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("minimum_quantity", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.ForeignKeyConstraint(["ingredient_id"], ["ingredients.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("ingredient_id", name="uq_stock_levels_ingredient"),
        sa.CheckConstraint("current_quantity >= 0", name="ck_stock_levels_current_non_negative"),
        sa.CheckConstraint("minimum_quantity >= 0", name="ck_stock_levels_minimum_non_negative"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("placed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="FULFILLED"),
        sa.Column("total_amount", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("payment_channel", sa.String(16), nullable=False),
        sa.Column("expected_settlement_date", sa.Date(), nullable=False),
        sa.Column("is_settled", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("settled_at", sa.Date(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("orders", schema=None) as batch_op:
        batch_op.create_index("ix_orders_placed_at", ["placed_at"], unique=False)
        batch_op.create_index("ix_orders_status", ["status"], unique=False)
        batch_op.create_index("ix_orders_payment_channel", ["payment_channel"], unique=False)
        batch_op.create_index("ix_orders_settlement_pending", ["is_settled", "expected_settlement_date"], unique=False)
        batch_op.create_index("ix_orders_status_placed", ["status", "placed_at"], unique=False)

    op.create_table(
        "order_lines",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("order_id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"]),
        sa.ForeignKeyConstraint(["item_id"], ["menu_items.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("quantity > 0", name="ck_order_lines_quantity_positive"),
        sa.CheckConstraint("unit_price >= 0", name="ck_order_lines_unit_price_non_negative"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("order_lines", schema=None) as batch_op:
        batch_op.create_index("ix_order_lines_order_id", ["order_id"], unique=False)
        batch_op.create_index("ix_order_lines_item_id", ["item_id"], unique=False)

    op.create_table(
        "stock_ledger_entries",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("ingredient_id", sa.Integer(), nullable=False),
        sa.Column("change_kind", sa.String(8), nullable=False),
        sa.Column("delta_quantity", sa.Float(), nullable=False),
        sa.Column("quantity_before", sa.Float(), nullable=False),
        sa.Column("quantity_after", sa.Float(), nullable=False),
        sa.Column("order_id", sa.Integer(), nullable=True),
        sa.Column("note", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["ingredient_id"], ["ingredients.id"]),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("delta_quantity > 0", name="ck_stock_ledger_delta_positive"),
        sa.CheckConstraint("quantity_after >= 0", name="ck_stock_ledger_after_non_negative"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("stock_ledger_entries", schema=None) as batch_op:
        batch_op.create_index("ix_stock_ledger_entries_ingredient_id", ["ingredient_id"], unique=False)
        batch_op.create_index("ix_stock_ledger_entries_change_kind", ["change_kind"], unique=False)
        batch_op.create_index("ix_stock_ledger_entries_order_id", ["order_id"], unique=False)
        batch_op.create_index("ix_stock_ledger_entries_created_at", ["created_at"], unique=False)
        batch_op.create_index("ix_stock_ledger_ingredient_created", ["ingredient_id", "created_at"], unique=False)

    op.create_table(
        "employees",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("full_name", sa.String(128), nullable=False),
        sa.Column("position", sa.String(64), nullable=False, server_default="STAFF"),
        sa.Column("salary_type", sa.String(16), nullable=False, server_default="HOURLY"),
        sa.Column("hourly_wage", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("monthly_salary", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_employees_is_active", "employees", ["is_active"], unique=False)

    op.create_table(
        "work_records",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("work_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("break_minutes", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_hours", sa.Float(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("employee_id", "work_date", name="uq_work_records_employee_date"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("work_records", schema=None) as batch_op:
        batch_op.create_index("ix_work_records_employee_id", ["employee_id"], unique=False)
        batch_op.create_index("ix_work_records_work_date", ["work_date"], unique=False)


def downgrade():
    op.drop_table("work_records")
    op.drop_table("employees")
    op.drop_table("stock_ledger_entries")
    op.drop_table("order_lines")
    op.drop_table("orders")
    op.drop_table("stock_levels")
    op.drop_table("recipe_lines")
    op.drop_table("menu_items")
    op.drop_table("ingredients")
