"""create journal, entry and media tables

Revision ID: 0001_create_journal_tables
Revises: 
Create Date: 2026-10-01 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001_create_journal_tables"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "journals",
        sa.Column("id", sa.String(36), primary_key=True, nullable=False),
        sa.Column("owner_id", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("theme_family", sa.Text(), nullable=False),
        sa.Column("page_size", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "journals_owner_created_idx",
        "journals",
        ["owner_id", sa.text("created_at DESC")],
    )

    op.create_table(
        "entries",
        sa.Column("id", sa.String(36), primary_key=True, nullable=False),
        sa.Column("owner_id", sa.Text(), nullable=False),
        sa.Column(
            "journal_id",
            sa.String(36),
            sa.ForeignKey("journals.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("status", sa.Text(), nullable=False, server_default="draft"),
        sa.Column("title_final", sa.Text(), nullable=True),
        sa.Column("desc_final", sa.Text(), nullable=True),
        sa.Column("approved_template_id", sa.Text(), nullable=True),
        sa.Column("current_version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_preview", postgresql.JSONB(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index(
        "entries_owner_journal_idx",
        "entries",
        ["owner_id", "journal_id", sa.text("created_at DESC")],
    )
    op.alter_column("entries", "status", server_default=None)
    op.alter_column("entries", "current_version", server_default=None)

    op.create_table(
        "media_assets",
        sa.Column("id", sa.String(36), primary_key=True, nullable=False),
        sa.Column("owner_id", sa.Text(), nullable=False),
        sa.Column(
            "entry_id",
            sa.String(36),
            sa.ForeignKey("entries.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("original_url", sa.Text(), nullable=False),
        sa.Column("derived_url", sa.Text(), nullable=False),
        sa.Column("original_name", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index(
        "media_assets_entry_idx",
        "media_assets",
        ["entry_id", sa.text("created_at DESC")],
    )

    op.create_table(
        "entry_versions",
        sa.Column("id", sa.String(36), primary_key=True, nullable=False),
        sa.Column("owner_id", sa.Text(), nullable=False),
        sa.Column(
            "entry_id",
            sa.String(36),
            sa.ForeignKey("entries.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("version_num", sa.Integer(), nullable=False),
        sa.Column("template_id", sa.Text(), nullable=False),
        sa.Column("title_final", sa.Text(), nullable=False),
        sa.Column("desc_final", sa.Text(), nullable=False, server_default=""),
        sa.Column("approved_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("entry_id", "version_num", name="entry_versions_entry_num_key"),
    )


def downgrade() -> None:
    op.drop_table("entry_versions")
    op.drop_index("media_assets_entry_idx", table_name="media_assets")
    op.drop_table("media_assets")
    op.drop_index("entries_owner_journal_idx", table_name="entries")
    op.drop_table("entries")
    op.drop_index("journals_owner_created_idx", table_name="journals")
    op.drop_table("journals")
