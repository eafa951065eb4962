"""Initial migration: create users, products, and generation_records tables

Revision ID: 20260101_000000
Revises:
Create Date: 2026-01-01 00:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20260101_000000"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create users table
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("role", sa.String(50), nullable=False, server_default="user"),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)

    # Create products table (ids come from the store catalog)
    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("sku", sa.String(100), nullable=True),
        sa.Column("brand_name", sa.String(255), nullable=True),
        sa.Column("categories", sa.JSON(), nullable=True),
        sa.Column("attributes", sa.JSON(), nullable=True),
        sa.Column("image_urls", sa.JSON(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )

    # Create generation_records table
    op.create_table(
        "generation_records",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tool", sa.String(50), nullable=False, server_default="magic-descriptions"),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(50), nullable=False, server_default="none"),
        sa.Column("mode", sa.String(20), nullable=True),
        sa.Column("external_job_id", sa.String(255), nullable=True),
        sa.Column("draft_content", sa.Text(), nullable=True),
        sa.Column("delivered", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("declined", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("tool", "item_id", name="uq_generation_records_tool_item"),
    )
    op.create_index(op.f("ix_generation_records_tool"), "generation_records", ["tool"])
    op.create_index(op.f("ix_generation_records_item_id"), "generation_records", ["item_id"])
    op.create_index(op.f("ix_generation_records_status"), "generation_records", ["status"])
    op.create_index(op.f("ix_generation_records_external_job_id"), "generation_records", ["external_job_id"])


def downgrade() -> None:
    op.drop_index(op.f("ix_generation_records_external_job_id"), table_name="generation_records")
    op.drop_index(op.f("ix_generation_records_status"), table_name="generation_records")
    op.drop_index(op.f("ix_generation_records_item_id"), table_name="generation_records")
    op.drop_index(op.f("ix_generation_records_tool"), table_name="generation_records")
    op.drop_table("generation_records")
    op.drop_table("products")
    op.drop_index(op.f("ix_users_email"), table_name="users")
    op.drop_table("users")
