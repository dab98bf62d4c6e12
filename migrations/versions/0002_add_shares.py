"""add shares and share invites tables

Revision ID: 0002_add_shares
Revises: 0001_create_journal_tables
Create Date: 2026-10-08 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


revision = "0002_add_shares"
down_revision = "0001_create_journal_tables"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "shares",
        sa.Column("id", sa.String(36), primary_key=True, nullable=False),
        sa.Column("owner_id", sa.Text(), nullable=False),
        sa.Column(
            "journal_id",
            sa.String(36),
            sa.ForeignKey("journals.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("mode", sa.Text(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=False, unique=True),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("shares_owner_journal_idx", "shares", ["owner_id", "journal_id"])
    op.alter_column("shares", "enabled", server_default=None)

    op.create_table(
        "share_invites",
        sa.Column("id", sa.String(36), primary_key=True, nullable=False),
        sa.Column(
            "share_id",
            sa.String(36),
            sa.ForeignKey("shares.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("invite_slug", sa.Text(), nullable=False, unique=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    op.drop_table("share_invites")
    op.drop_index("shares_owner_journal_idx", table_name="shares")
    op.drop_table("shares")
