"""Create categories, regions and recipes tables

Revision ID: 001
Revises: None
Create Date: 2026-10-16 00:00:00.000000+00:00

What:  Initial catalog schema. Recipes reference a required category and an
       optional region; both references block deletion of the referenced row.

Rollback: downgrade() drops all three tables.
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _lookup_table(name: str) -> None:
    op.create_table(
        name,
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )


def upgrade() -> None:
    _lookup_table("categories")
    _lookup_table("regions")

    op.create_table(
        "recipes",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        # Ordered lists of strings
        sa.Column("ingredients", sa.JSON(), nullable=False),
        sa.Column("steps", sa.JSON(), nullable=False),
        sa.Column("image_url", sa.String(500), nullable=False),
        sa.Column(
            "image_asset_id",
            sa.String(255),
            nullable=False,
            comment="Cloudinary public_id, used to delete the hosted image",
        ),
        sa.Column("category_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("region_id", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["region_id"], ["regions.id"], ondelete="RESTRICT"),
    )

    op.create_index("ix_recipes_category_id", "recipes", ["category_id"])
    # Listing, latest and search all sort newest first
    op.create_index("idx_recipes_created_at", "recipes", [sa.text("created_at DESC")])


def downgrade() -> None:
    op.drop_index("idx_recipes_created_at", table_name="recipes")
    op.drop_index("ix_recipes_category_id", table_name="recipes")
    op.drop_table("recipes")
    op.drop_table("regions")
    op.drop_table("categories")
