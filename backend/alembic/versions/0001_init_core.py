"""init core tables

Revision ID: 0001_init_core
Revises: 
Create Date: 2026-10-19T09:00:00.000000Z
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_init_core"
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        "servers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("url", sa.String(length=255), nullable=False),
        sa.Column("api_key", sa.String(length=255), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "panel_identities",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(length=64), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("role", sa.String(length=16), nullable=False, server_default="reseller"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_panel_identities_username", "panel_identities", ["username"], unique=True)

    op.create_table(
        "subscriptions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("account_id", sa.String(length=64), nullable=False),
        sa.Column("server_id", sa.Integer(), sa.ForeignKey("servers.id", ondelete="CASCADE"), nullable=False),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("panel_identities.id", ondelete="SET NULL"), nullable=True),
        sa.Column("expiration_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("account_id", "server_id", name="uq_subscription_account_server"),
    )
    op.create_index("ix_subscriptions_server_id", "subscriptions", ["server_id"])
    op.create_index("ix_subscriptions_created_by", "subscriptions", ["created_by"])
    op.create_index("ix_subscriptions_expiration_date", "subscriptions", ["expiration_date"])


def downgrade():
    op.drop_index("ix_subscriptions_expiration_date", table_name="subscriptions")
    op.drop_index("ix_subscriptions_created_by", table_name="subscriptions")
    op.drop_index("ix_subscriptions_server_id", table_name="subscriptions")
    op.drop_table("subscriptions")
    op.drop_index("ix_panel_identities_username", table_name="panel_identities")
    op.drop_table("panel_identities")
    op.drop_table("servers")
