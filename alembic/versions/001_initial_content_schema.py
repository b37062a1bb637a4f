"""Initial content schema.

Revision ID: 001_initial_content_schema
Revises:
Create Date: 2026-10-19

Creates the four content tables:
- categories
- tutorials
- comments (parent_id is intentionally not a foreign key)
- page_views (append-only analytics input)
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001_initial_content_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "categories",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(150), nullable=False),
        sa.Column("slug", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("color", sa.String(50), nullable=False),
        sa.Column("icon", sa.String(50), nullable=False),
        sa.Column("order_index", sa.Integer, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_categories_slug", "categories", ["slug"], unique=True)
    op.create_index("ix_categories_order_index", "categories", ["order_index"])

    op.create_table(
        "tutorials",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("slug", sa.String(350), nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("author", sa.String(150), nullable=False),
        sa.Column("duration", sa.String(50), nullable=True),
        sa.Column("difficulty", sa.String(20), nullable=False),
        sa.Column("tags", sa.JSON, nullable=False),
        sa.Column("published", sa.Boolean, nullable=False),
        sa.Column("view_count", sa.Integer, nullable=False),
        sa.Column("featured_image", sa.String(500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("category_id", sa.Integer, sa.ForeignKey("categories.id"), nullable=False),
    )
    op.create_index("ix_tutorials_slug", "tutorials", ["slug"], unique=True)
    op.create_index("ix_tutorials_published_created_at", "tutorials", ["published", "created_at"])
    op.create_index("ix_tutorials_category_id_created_at", "tutorials", ["category_id", "created_at"])

    op.create_table(
        "comments",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "tutorial_id",
            sa.Integer,
            sa.ForeignKey("tutorials.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("parent_id", sa.Integer, nullable=True),
        sa.Column("author_name", sa.String(150), nullable=False),
        sa.Column("author_email", sa.String(255), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("approved", sa.Boolean, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_comments_tutorial_id", "comments", ["tutorial_id"])
    op.create_index("ix_comments_parent_id", "comments", ["parent_id"])
    op.create_index("ix_comments_approved_created_at", "comments", ["approved", "created_at"])

    op.create_table(
        "page_views",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("page", sa.String(500), nullable=False),
        sa.Column("page_title", sa.String(300), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("session_id", sa.String(100), nullable=False),
        sa.Column("referrer", sa.String(500), nullable=True),
        sa.Column("device_type", sa.String(20), nullable=False),
        sa.Column("browser", sa.String(50), nullable=False),
        sa.Column("user_agent", sa.String(500), nullable=True),
    )
    op.create_index("ix_page_views_page", "page_views", ["page"])
    op.create_index("ix_page_views_timestamp", "page_views", ["timestamp"])
    op.create_index("ix_page_views_session_id", "page_views", ["session_id"])


def downgrade() -> None:
    op.drop_table("page_views")
    op.drop_table("comments")
    op.drop_table("tutorials")
    op.drop_table("categories")
