"""Guide images; drafts keep no link to a deleted recipe

Revision ID: 0002_guide_images
Revises: 0001_init
Create Date: 2026-10-19
"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "0002_guide_images"
down_revision = "0001_init"
branch_labels = None
depends_on = None


def upgrade() -> None:
    conn = op.get_bind()
    dialect = conn.dialect.name if conn is not None else "sqlite"
    false_def = sa.text("FALSE") if dialect == "postgresql" else sa.text("0")

    op.create_table(
        "guide_images",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("guide_id", sa.Integer(), sa.ForeignKey("guides.id", ondelete="CASCADE"), nullable=False),
        sa.Column("url", sa.String(length=500), nullable=False),
        sa.Column("medium_url", sa.String(length=500)),
        sa.Column("thumbnail_url", sa.String(length=500)),
        sa.Column("alt", sa.String(length=255)),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=false_def),
        sa.Column("width", sa.Integer()),
        sa.Column("height", sa.Integer()),
        sa.Column("created_at", sa.DateTime()),
    )
    op.create_index("ix_guide_images_guide", "guide_images", ["guide_id"])

    # sqlite does not enforce the constraint; delete_recipe clears the column itself
    if dialect == "postgresql":
        op.drop_constraint("draft_recipes_published_recipe_id_fkey", "draft_recipes", type_="foreignkey")
        op.create_foreign_key(
            "draft_recipes_published_recipe_id_fkey",
            "draft_recipes",
            "recipes",
            ["published_recipe_id"],
            ["id"],
            ondelete="SET NULL",
        )


def downgrade() -> None:
    conn = op.get_bind()
    dialect = conn.dialect.name if conn is not None else "sqlite"
    if dialect == "postgresql":
        op.drop_constraint("draft_recipes_published_recipe_id_fkey", "draft_recipes", type_="foreignkey")
        op.create_foreign_key(
            "draft_recipes_published_recipe_id_fkey", "draft_recipes", "recipes", ["published_recipe_id"], ["id"]
        )
    op.drop_index("ix_guide_images_guide", table_name="guide_images")
    op.drop_table("guide_images")
