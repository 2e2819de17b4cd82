"""Initial marketplace schema.

Revision ID: 0001
Revises:
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("display_name", sa.String(150), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("email"),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_created_at", "users", ["created_at"])

    op.create_table(
        "service_categories",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(150), nullable=False),
        sa.Column("slug", sa.String(180), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "parent_id",
            sa.Integer(),
            sa.ForeignKey("service_categories.id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_timestamps(),
    )
    op.create_index("ix_service_categories_slug", "service_categories", ["slug"], unique=True)
    op.create_index("ix_service_categories_created_at", "service_categories", ["created_at"])
    op.create_index("ix_service_categories_parent_id_order", "service_categories", ["parent_id", "order"])

    op.create_table(
        "services",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("slug", sa.String(220), nullable=False),
        sa.Column("short_description", sa.String(500), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(32), nullable=False, server_default="draft"),
        sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_featured", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "category_id",
            sa.Integer(),
            sa.ForeignKey("service_categories.id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_timestamps(),
    )
    op.create_index("ix_services_slug", "services", ["slug"], unique=True)
    op.create_index("ix_services_name", "services", ["name"])
    op.create_index("ix_services_category_id", "services", ["category_id"])
    op.create_index("ix_services_created_at", "services", ["created_at"])
    op.create_index("ix_services_deleted_at_order", "services", ["deleted_at", "order"])
    op.create_index("ix_services_status_category_id", "services", ["status", "category_id"])

    op.create_table(
        "sellers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("store_name", sa.String(150), nullable=False),
        sa.Column("slug", sa.String(180), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="pending_review"),
        sa.Column("commission_rate", sa.Numeric(5, 2), nullable=False, server_default="20.00"),
        sa.Column("total_sales", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_revenue", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("average_rating", sa.Numeric(3, 2), nullable=False, server_default="0"),
        *_timestamps(),
        sa.UniqueConstraint("user_id"),
    )
    op.create_index("ix_sellers_slug", "sellers", ["slug"], unique=True)
    op.create_index("ix_sellers_status", "sellers", ["status"])
    op.create_index("ix_sellers_created_at", "sellers", ["created_at"])

    op.create_table(
        "payouts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "seller_id",
            sa.Integer(),
            sa.ForeignKey("sellers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("platform_fee", sa.Numeric(12, 2), nullable=False),
        sa.Column("net_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("commission_rate", sa.Numeric(5, 2), nullable=False),
        sa.Column("item_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(32), nullable=False, server_default="pending"),
        sa.Column("failure_reason", sa.String(500), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("net_amount = amount - platform_fee", name="ck_payouts_net_amount"),
        sa.CheckConstraint("period_end >= period_start", name="ck_payouts_period"),
    )
    op.create_index("ix_payouts_seller_id_created_at", "payouts", ["seller_id", "created_at"])
    op.create_index("ix_payouts_status", "payouts", ["status"])
    op.create_index("ix_payouts_created_at", "payouts", ["created_at"])


def downgrade() -> None:
    op.drop_table("payouts")
    op.drop_table("sellers")
    op.drop_table("services")
    op.drop_table("service_categories")
    op.drop_table("users")
