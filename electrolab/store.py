"""
The only module that talks to the database session.

Services never build queries themselves; they call the small async
functions below, each of which takes the request's ``AsyncSession`` as
its first argument.  Writes are flushed, never committed: the
transaction boundary belongs to ``get_db``.

Uniqueness and references are enforced by the schema.  ``insert``,
``flush_changes`` and ``remove`` translate the ``IntegrityError`` raised
by a losing concurrent writer into the same ``ConflictError`` or
``ValidationError`` the service pre-checks produce.
"""
import logging
from datetime import datetime
from typing import Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased, joinedload

from electrolab.errors import ConflictError, ValidationError
from electrolab.models import Category, Comment, PageView, Tutorial

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Generic write helpers
# ---------------------------------------------------------------------------

_FOREIGN_KEY_SQLSTATE = "23503"


def _is_foreign_key_violation(exc: IntegrityError) -> bool:
    """True for FK violations (Postgres SQLSTATE 23503, SQLite message text)."""
    code = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
    if code is not None:
        return code == _FOREIGN_KEY_SQLSTATE
    return "foreign key" in str(exc.orig).lower()


async def _flush_or_reject(
    db: AsyncSession, entity: str, field: str, reference_field: str | None
) -> None:
    try:
        await db.flush()
    except IntegrityError as exc:
        await db.rollback()
        if reference_field is not None and _is_foreign_key_violation(exc):
            logger.info("Foreign key rejected %s write on %r: %s", entity, reference_field, exc.orig)
            raise ValidationError(
                f"Referenced {reference_field} does not exist", field=reference_field
            ) from exc
        logger.info("Unique constraint rejected %s write on %r: %s", entity, field, exc.orig)
        raise ConflictError(f"A {entity} with this {field} already exists", field=field) from exc


async def insert(
    db: AsyncSession,
    obj,
    *,
    entity: str,
    conflict_field: str = "slug",
    reference_field: str | None = None,
):
    """
    Add *obj* and flush.  A unique violation becomes ``ConflictError`` on
    *conflict_field*; a foreign-key violation becomes ``ValidationError``
    on *reference_field*.
    """
    db.add(obj)
    await _flush_or_reject(db, entity, conflict_field, reference_field)
    return obj


async def flush_changes(
    db: AsyncSession,
    *,
    entity: str,
    conflict_field: str = "slug",
    reference_field: str | None = None,
) -> None:
    """Flush pending attribute changes on already-loaded entities."""
    await _flush_or_reject(db, entity, conflict_field, reference_field)


async def remove(db: AsyncSession, obj, *, entity: str, referenced_by: str) -> None:
    """
    Delete *obj*.  Rows still pointing at it (inserted after the caller's
    check) make the database refuse; that surfaces as ``ConflictError``.
    """
    await db.delete(obj)
    try:
        await db.flush()
    except IntegrityError as exc:
        await db.rollback()
        logger.info("Delete of %s refused, still referenced: %s", entity, exc.orig)
        raise ConflictError(
            f"{entity.capitalize()} has associated {referenced_by}", field=f"{entity}_id"
        ) from exc


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

async def get_category(db: AsyncSession, category_id: int) -> Category | None:
    return await db.get(Category, category_id)


async def find_category_by_slug(db: AsyncSession, slug: str) -> Category | None:
    result = await db.execute(select(Category).where(Category.slug == slug))
    return result.scalar_one_or_none()


async def count_categories(db: AsyncSession) -> int:
    return (await db.execute(select(func.count()).select_from(Category))).scalar_one()


async def list_categories(db: AsyncSession) -> Sequence[Category]:
    q = select(Category).order_by(Category.order_index.asc(), Category.name.asc())
    return (await db.execute(q)).scalars().all()


async def category_has_tutorials(db: AsyncSession, category_id: int) -> bool:
    q = select(Tutorial.id).where(Tutorial.category_id == category_id).limit(1)
    return (await db.execute(q)).first() is not None


# ---------------------------------------------------------------------------
# Tutorials
# ---------------------------------------------------------------------------

async def get_tutorial(db: AsyncSession, tutorial_id: int) -> Tutorial | None:
    q = (
        select(Tutorial)
        .where(Tutorial.id == tutorial_id)
        .options(joinedload(Tutorial.category))
    )
    return (await db.execute(q)).unique().scalar_one_or_none()


async def find_tutorial_by_slug(db: AsyncSession, slug: str) -> Tutorial | None:
    q = (
        select(Tutorial)
        .where(Tutorial.slug == slug)
        .options(joinedload(Tutorial.category))
    )
    return (await db.execute(q)).unique().scalar_one_or_none()


async def list_tutorials(
    db: AsyncSession,
    category_slug: str | None = None,
    published_only: bool = True,
    limit: int | None = None,
) -> Sequence[Tutorial]:
    """Return tutorials newest first, with their category eagerly joined."""
    q = select(Tutorial).options(joinedload(Tutorial.category))
    if published_only:
        q = q.where(Tutorial.published.is_(True))
    if category_slug:
        q = q.join(Category, Tutorial.category_id == Category.id).where(
            Category.slug == category_slug
        )
    q = q.order_by(Tutorial.created_at.desc(), Tutorial.id.desc())
    if limit is not None:
        q = q.limit(limit)
    return (await db.execute(q)).unique().scalars().all()


async def increment_view_count(db: AsyncSession, slug: str) -> int | None:
    """Atomically add one view; returns the new count or None for an unknown slug."""
    result = await db.execute(
        update(Tutorial)
        .where(Tutorial.slug == slug)
        .values(view_count=Tutorial.view_count + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        return None
    q = select(Tutorial.view_count).where(Tutorial.slug == slug)
    return (await db.execute(q)).scalar_one()


async def delete_comments_for_tutorial(db: AsyncSession, tutorial_id: int) -> int:
    result = await db.execute(
        delete(Comment)
        .where(Comment.tutorial_id == tutorial_id)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def tutorial_counts(db: AsyncSession) -> dict:
    q = select(
        func.count(Tutorial.id),
        func.count(Tutorial.id).filter(Tutorial.published.is_(True)),
        func.coalesce(func.sum(Tutorial.view_count), 0),
    )
    total, published, views = (await db.execute(q)).one()
    return {"total": total, "published": published, "views": int(views)}


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

async def get_comment(db: AsyncSession, comment_id: int) -> Comment | None:
    return await db.get(Comment, comment_id)


async def list_comments(
    db: AsyncSession,
    approved: bool | None = None,
    tutorial_id: int | None = None,
) -> list[dict]:
    """
    Return comments newest first, each joined with its tutorial's
    title/slug, its reply count and whether its parent still exists.

    Both joins are outer joins: a comment whose parent has been deleted
    is still returned.
    """
    reply = aliased(Comment)
    parent = aliased(Comment)
    reply_count = (
        select(func.count(reply.id))
        .where(reply.parent_id == Comment.id)
        .correlate(Comment)
        .scalar_subquery()
    )
    q = (
        select(
            Comment,
            Tutorial.title,
            Tutorial.slug,
            reply_count.label("reply_count"),
            parent.id.label("resolved_parent_id"),
        )
        .outerjoin(Tutorial, Comment.tutorial_id == Tutorial.id)
        .outerjoin(parent, Comment.parent_id == parent.id)
    )
    if approved is not None:
        q = q.where(Comment.approved.is_(approved))
    if tutorial_id is not None:
        q = q.where(Comment.tutorial_id == tutorial_id)
    q = q.order_by(Comment.created_at.desc(), Comment.id.desc())

    rows = (await db.execute(q)).all()
    return [
        {
            "comment": comment,
            "tutorial_title": title,
            "tutorial_slug": slug,
            "reply_count": count or 0,
            "orphaned": comment.parent_id is not None and resolved is None,
        }
        for comment, title, slug, count, resolved in rows
    ]


async def approved_comments_for_tutorial(db: AsyncSession, tutorial_id: int) -> Sequence[Comment]:
    q = (
        select(Comment)
        .where(Comment.tutorial_id == tutorial_id, Comment.approved.is_(True))
        .order_by(Comment.created_at.asc(), Comment.id.asc())
    )
    return (await db.execute(q)).scalars().all()


async def mark_comment_approved(db: AsyncSession, comment_id: int) -> Comment | None:
    """
    Single-statement approve.  Returns the refreshed comment, or None when
    the row does not exist (including one deleted by a concurrent request).
    """
    result = await db.execute(
        update(Comment)
        .where(Comment.id == comment_id)
        .values(approved=True)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        return None
    return await db.get(Comment, comment_id, populate_existing=True)


async def delete_comment(db: AsyncSession, comment_id: int) -> bool:
    """Single-statement delete; False when there was nothing to delete."""
    loaded = await db.get(Comment, comment_id)
    result = await db.execute(
        delete(Comment)
        .where(Comment.id == comment_id)
        .execution_options(synchronize_session=False)
    )
    if loaded is not None:
        db.expunge(loaded)
    return result.rowcount > 0


async def comment_counts(db: AsyncSession) -> dict:
    q = select(
        func.count(Comment.id).filter(Comment.approved.is_(False)),
        func.count(Comment.id).filter(Comment.approved.is_(True)),
    )
    pending, approved = (await db.execute(q)).one()
    return {"pending": pending, "approved": approved}


# ---------------------------------------------------------------------------
# Page views
# ---------------------------------------------------------------------------

async def append_page_view(db: AsyncSession, view: PageView) -> PageView:
    db.add(view)
    await db.flush()
    return view


async def page_views_since(
    db: AsyncSession, since: datetime, page_prefix: str | None = None
) -> Sequence[PageView]:
    q = select(PageView).where(PageView.timestamp >= since)
    if page_prefix:
        q = q.where(PageView.page.startswith(page_prefix, autoescape=True))
    q = q.order_by(PageView.timestamp.asc(), PageView.id.asc())
    return (await db.execute(q)).scalars().all()
