from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from electrolab.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Category
# ---------------------------------------------------------------------------
class Category(Base):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    slug: Mapped[str] = mapped_column(String(200), unique=True, nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    color: Mapped[str] = mapped_column(String(50), nullable=False, default="bg-blue-500")
    icon: Mapped[str] = mapped_column(String(50), nullable=False, default="BookOpen")
    order_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    # lazy="raise": relationships are only ever loaded explicitly.
    # passive_deletes="all": the tutorials FK, not the ORM, decides whether a
    # category row may go.
    tutorials: Mapped[List["Tutorial"]] = relationship(
        "Tutorial", back_populates="category", lazy="raise", passive_deletes="all"
    )


# ---------------------------------------------------------------------------
# Tutorial
# ---------------------------------------------------------------------------
class Tutorial(Base):
    __tablename__ = "tutorials"

    __table_args__ = (
        # Public listing: published tutorials, newest first
        Index("ix_tutorials_published_created_at", "published", "created_at"),
        # Category pages
        Index("ix_tutorials_category_id_created_at", "category_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    slug: Mapped[str] = mapped_column(String(350), unique=True, nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    author: Mapped[str] = mapped_column(String(150), nullable=False)
    duration: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    difficulty: Mapped[str] = mapped_column(String(20), nullable=False, default="Beginner")
    # Stored as a JSON array so tag order survives the round trip.
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    view_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    featured_image: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    # No ondelete: a referenced category is refused by the content service.
    category_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("categories.id"), nullable=False
    )

    category: Mapped["Category"] = relationship(
        "Category", back_populates="tutorials", lazy="raise"
    )
    comments: Mapped[List["Comment"]] = relationship(
        "Comment", back_populates="tutorial", lazy="raise", passive_deletes="all"
    )


# ---------------------------------------------------------------------------
# Comment
# ---------------------------------------------------------------------------
class Comment(Base):
    __tablename__ = "comments"

    __table_args__ = (
        # Moderation queue, newest first
        Index("ix_comments_approved_created_at", "approved", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tutorial_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tutorials.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Deliberately not a foreign key: deleting a parent leaves replies orphaned.
    parent_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    author_name: Mapped[str] = mapped_column(String(150), nullable=False)
    author_email: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    tutorial: Mapped["Tutorial"] = relationship(
        "Tutorial", back_populates="comments", lazy="raise"
    )


# ---------------------------------------------------------------------------
# PageView (append-only analytics input)
# ---------------------------------------------------------------------------
class PageView(Base):
    __tablename__ = "page_views"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    page: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    page_title: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )
    session_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    referrer: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    device_type: Mapped[str] = mapped_column(String(20), nullable=False)
    browser: Mapped[str] = mapped_column(String(50), nullable=False)
    user_agent: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
