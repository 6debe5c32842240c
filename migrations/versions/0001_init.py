"""Initial schema: accounts, taxonomy, recipes, community, newsletter, drafts, guides

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19
"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    ]


def upgrade() -> None:
    conn = op.get_bind()
    dialect = conn.dialect.name if conn is not None else "sqlite"
    true_def = sa.text("TRUE") if dialect == "postgresql" else sa.text("1")
    false_def = sa.text("FALSE") if dialect == "postgresql" else sa.text("0")

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=200)),
        sa.Column("username", sa.String(length=100), unique=True),
        sa.Column("email", sa.String(length=200), nullable=False, unique=True),
        sa.Column("email_verified", sa.DateTime()),
        sa.Column("password_hash", sa.String(length=255)),
        sa.Column("image", sa.String(length=500)),
        sa.Column("bio", sa.Text()),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="user"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="ACTIVE"),
        sa.Column("subscribe_comment_reply", sa.Boolean(), nullable=False, server_default=true_def),
        sa.Column("subscribe_newsletter", sa.Boolean(), nullable=False, server_default=false_def),
        *_timestamps(),
    )
    op.create_table(
        "verification_tokens",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("identifier", sa.String(length=200), nullable=False),
        sa.Column("token", sa.String(length=64), nullable=False, unique=True),
        sa.Column("expires", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "password_reset_tokens",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=200), nullable=False),
        sa.Column("token", sa.String(length=64), nullable=False, unique=True),
        sa.Column("expires", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("slug", sa.String(length=160), nullable=False, unique=True),
        sa.Column("description", sa.Text()),
        sa.Column("image", sa.String(length=500)),
        sa.Column("recipes_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime()),
    )
    op.create_table(
        "tags",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("slug", sa.String(length=160), nullable=False, unique=True),
    )
    op.create_table(
        "recipes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=False, unique=True),
        sa.Column("short_description", sa.Text()),
        sa.Column("description", sa.Text()),
        sa.Column("language", sa.String(length=10), nullable=False, server_default="ms"),
        sa.Column("prep_time", sa.Integer()),
        sa.Column("cook_time", sa.Integer()),
        sa.Column("total_time", sa.Integer()),
        sa.Column("servings", sa.Integer()),
        sa.Column("serving_type", sa.String(length=20)),
        sa.Column("difficulty", sa.String(length=10), nullable=False, server_default="MEDIUM"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="DRAFT"),
        sa.Column("published_at", sa.DateTime()),
        sa.Column("is_editors_pick", sa.Boolean(), nullable=False, server_default=false_def),
        sa.Column("view_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("like_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("category_id", sa.Integer(), sa.ForeignKey("categories.id")),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id")),
        sa.Column("openai_prep_time", sa.Integer()),
        sa.Column("openai_cook_time", sa.Integer()),
        sa.Column("openai_total_time", sa.Integer()),
        sa.Column("openai_difficulty", sa.String(length=10)),
        sa.Column("openai_tags", sa.JSON()),
        sa.Column("openai_servings", sa.Integer()),
        sa.Column("openai_serving_type", sa.String(length=20)),
        sa.Column("openai_audited_at", sa.DateTime()),
        *_timestamps(),
    )
    op.create_index("ix_recipes_status_created", "recipes", ["status", "created_at"])
    op.create_index("ix_recipes_status_published", "recipes", ["status", "published_at"])
    op.create_table(
        "recipe_tags",
        sa.Column("recipe_id", sa.Integer(), sa.ForeignKey("recipes.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("tag_id", sa.Integer(), sa.ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
    )
    op.create_table(
        "recipe_sections",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("recipe_id", sa.Integer(), sa.ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(length=255)),
        sa.Column("type", sa.String(length=20), nullable=False, server_default="INGREDIENTS"),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_table(
        "recipe_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "section_id", sa.Integer(), sa.ForeignKey("recipe_sections.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_table(
        "recipe_tips",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("recipe_id", sa.Integer(), sa.ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
    )
    op.create_table(
        "recipe_images",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("recipe_id", sa.Integer(), sa.ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("url", sa.String(length=500), nullable=False),
        sa.Column("medium_url", sa.String(length=500)),
        sa.Column("thumbnail_url", sa.String(length=500)),
        sa.Column("alt", sa.String(length=255)),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=false_def),
        sa.Column("width", sa.Integer()),
        sa.Column("height", sa.Integer()),
        sa.Column("created_at", sa.DateTime()),
    )
    op.create_table(
        "comments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="PENDING"),
        sa.Column("recipe_id", sa.Integer(), sa.ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("parent_id", sa.Integer(), sa.ForeignKey("comments.id")),
        *_timestamps(),
    )
    op.create_index("ix_comments_recipe_status", "comments", ["recipe_id", "status"])
    op.create_index("ix_comments_user_created", "comments", ["user_id", "created_at"])
    op.create_table(
        "saved_recipes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("recipe_id", sa.Integer(), sa.ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("notes", sa.Text()),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "recipe_id", name="uq_saved_user_recipe"),
    )
    op.create_table(
        "user_likes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("recipe_id", sa.Integer(), sa.ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("created_at", sa.DateTime()),
        sa.UniqueConstraint("user_id", "recipe_id", name="uq_like_user_recipe"),
    )
    op.create_table(
        "subscribers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=200), nullable=False, unique=True),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=false_def),
        sa.Column("verification_token", sa.String(length=64), unique=True),
        sa.Column("verified_at", sa.DateTime()),
        *_timestamps(),
    )
    op.create_table(
        "draft_recipes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=255)),
        sa.Column("short_description", sa.Text()),
        sa.Column("description", sa.Text()),
        sa.Column("prep_time", sa.Integer()),
        sa.Column("cook_time", sa.Integer()),
        sa.Column("total_time", sa.Integer()),
        sa.Column("servings", sa.Integer()),
        sa.Column("serving_type", sa.String(length=20)),
        sa.Column("difficulty", sa.String(length=10), nullable=False, server_default="MEDIUM"),
        sa.Column("tags", sa.JSON()),
        sa.Column("tips", sa.JSON()),
        sa.Column("sections", sa.JSON()),
        sa.Column("source_script", sa.Text()),
        sa.Column("openai_model", sa.String(length=50)),
        sa.Column("openai_tokens_used", sa.Integer()),
        sa.Column("openai_cost", sa.String(length=32)),
        sa.Column("raw_openai_response", sa.Text()),
        sa.Column("prompt_used", sa.Text()),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id")),
        sa.Column("published_recipe_id", sa.Integer(), sa.ForeignKey("recipes.id")),
        *_timestamps(),
    )
    op.create_table(
        "guides",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=False, unique=True),
        sa.Column("content", sa.Text()),
        sa.Column("author_id", sa.Integer(), sa.ForeignKey("users.id")),
        *_timestamps(),
    )
    op.create_table(
        "guide_sections",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("guide_id", sa.Integer(), sa.ForeignKey("guides.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(length=255)),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_table(
        "guide_tags",
        sa.Column("guide_id", sa.Integer(), sa.ForeignKey("guides.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("tag_id", sa.Integer(), sa.ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
    )


def downgrade() -> None:
    for table in (
        "guide_tags",
        "guide_sections",
        "guides",
        "draft_recipes",
        "subscribers",
        "user_likes",
        "saved_recipes",
        "comments",
        "recipe_images",
        "recipe_tips",
        "recipe_items",
        "recipe_sections",
        "recipe_tags",
        "recipes",
        "tags",
        "categories",
        "password_reset_tokens",
        "verification_tokens",
        "users",
    ):
        op.drop_table(table)
