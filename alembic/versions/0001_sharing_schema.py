"""Create users, branches, entries and cross-branch link tables.

Revision ID: 0001_sharing_schema
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_sharing_schema"
down_revision = None
branch_labels = None
depends_on = None


def _enum(*values: str, name: str) -> sa.Enum:
    return sa.Enum(*values, name=name, native_enum=False, length=32)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("name", sa.String(length=255)),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )
    op.create_table(
        "groves",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("owner_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )
    op.create_table(
        "persons",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )
    op.create_table(
        "branches",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("owner_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("grove_id", sa.String(length=36), sa.ForeignKey("groves.id")),
        sa.Column("person_id", sa.String(length=36), sa.ForeignKey("persons.id")),
        sa.Column("is_legacy", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("archived", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_branches_owner_id", "branches", ["owner_id"])
    op.create_index("ix_branches_grove_id", "branches", ["grove_id"])

    op.create_table(
        "branch_preferences",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "branch_id",
            sa.String(length=36),
            sa.ForeignKey("branches.id"),
            nullable=False,
            unique=True,
        ),
        sa.Column("can_be_tagged", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("requires_tag_approval", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("visible_in_cross_shares", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )

    op.create_table(
        "entries",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("branch_id", sa.String(length=36), sa.ForeignKey("branches.id"), nullable=False),
        sa.Column("author_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("media_url", sa.String(length=1000)),
        sa.Column("audio_url", sa.String(length=1000)),
        sa.Column(
            "visibility",
            _enum("PRIVATE", "SHARED", "LEGACY", name="entry_visibility"),
            nullable=False,
            server_default="PRIVATE",
        ),
        sa.Column(
            "status",
            _enum("ACTIVE", "WITHDRAWN", name="entry_status"),
            nullable=False,
            server_default="ACTIVE",
        ),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_entries_branch_id", "entries", ["branch_id"])
    op.create_index("ix_entries_author_id", "entries", ["author_id"])

    op.create_table(
        "memory_branch_links",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("memory_id", sa.String(length=36), sa.ForeignKey("entries.id"), nullable=False),
        sa.Column("branch_id", sa.String(length=36), sa.ForeignKey("branches.id"), nullable=False),
        sa.Column("role", _enum("origin", "shared", name="link_role"), nullable=False),
        sa.Column(
            "visibility_status",
            _enum(
                "active",
                "pending_approval",
                "removed_by_branch",
                "removed_by_user",
                name="link_status",
            ),
            nullable=False,
            server_default="active",
        ),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.UniqueConstraint("memory_id", "branch_id", name="uq_memory_branch_links_memory_branch"),
    )
    op.create_index(
        "uq_memory_branch_links_origin",
        "memory_branch_links",
        ["memory_id"],
        unique=True,
        sqlite_where=sa.text("role = 'origin'"),
        postgresql_where=sa.text("role = 'origin'"),
    )
    op.create_index(
        "ix_memory_branch_links_branch_status",
        "memory_branch_links",
        ["branch_id", "visibility_status"],
    )


def downgrade() -> None:
    op.drop_index("ix_memory_branch_links_branch_status", table_name="memory_branch_links")
    op.drop_index("uq_memory_branch_links_origin", table_name="memory_branch_links")
    op.drop_table("memory_branch_links")
    op.drop_index("ix_entries_author_id", table_name="entries")
    op.drop_index("ix_entries_branch_id", table_name="entries")
    op.drop_table("entries")
    op.drop_table("branch_preferences")
    op.drop_index("ix_branches_grove_id", table_name="branches")
    op.drop_index("ix_branches_owner_id", table_name="branches")
    op.drop_table("branches")
    op.drop_table("persons")
    op.drop_table("groves")
    op.drop_table("users")
