"""create listings, audit_logs and settings

Revision ID: 20251019_000001_listings
Revises:
Create Date: 2025-10-19 00:00:00

"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20251019_000001_listings"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "listings",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=191), nullable=False),
        sa.Column("owner_ref", sa.String(length=64), nullable=True),
        sa.Column("owner_email", sa.String(length=191), nullable=True),
        sa.Column("payment_status", sa.String(length=32), nullable=False, server_default="none"),
        sa.Column("receipt_url", sa.Text(), nullable=True),
        sa.Column("last_payment_date", sa.DateTime(), nullable=True),
        sa.Column("listing_expiry_date", sa.Date(), nullable=True),
        sa.Column("addon_enabled", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("addon_expiry_date", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_listings_owner_ref", "listings", ["owner_ref"])
    op.create_index("ix_listings_payment_status", "listings", ["payment_status"])
    op.create_index("ix_listings_listing_expiry_date", "listings", ["listing_expiry_date"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("actor", sa.String(length=32), nullable=False),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("target_type", sa.String(length=64), nullable=False),
        sa.Column("target_id", sa.String(length=64), nullable=True),
        sa.Column("meta", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_audit_logs_target", "audit_logs", ["target_type", "target_id"])

    op.create_table(
        "settings",
        sa.Column("key", sa.String(length=191), primary_key=True),
        sa.Column("value", sa.Text(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )


def downgrade() -> None:
    op.drop_table("settings")
    op.drop_index("ix_audit_logs_target", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_listings_listing_expiry_date", table_name="listings")
    op.drop_index("ix_listings_payment_status", table_name="listings")
    op.drop_index("ix_listings_owner_ref", table_name="listings")
    op.drop_table("listings")
