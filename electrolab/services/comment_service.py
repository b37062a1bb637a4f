"""
Creation, moderation and listing of tutorial comments.

Lifecycle: every comment starts pending (``approved = False``) unless the
admin moderation path approves it at creation time.  Moderators can approve
(one-way) or delete (permanent, from either state).

Deleting a parent does not touch its replies.  They keep their stale
``parent_id``; listings flag them as ``orphaned`` and public threads show
them at the top level.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from electrolab import store
from electrolab.errors import NotFoundError, ValidationError, require_text
from electrolab.models import Comment
from electrolab.schemas import CommentCreate, CommentFilter, CommentSubmit
from electrolab.services import content_service

logger = logging.getLogger(__name__)

_FILTER_TO_APPROVED: dict[str, bool | None] = {
    "all": None,
    "pending": False,
    "approved": True,
}


async def create_comment(
    db: AsyncSession, data: CommentCreate, approve: bool = False
) -> Comment:
    """
    Create a comment on ``data.tutorial_id``.

    Any approval flag carried by the payload is ignored; only callers on the
    admin path may pass ``approve=True``.
    """
    author_name = require_text(data.author_name, "author_name")
    author_email = require_text(data.author_email, "author_email")
    content = require_text(data.content, "content")

    tutorial = await store.get_tutorial(db, data.tutorial_id)
    if tutorial is None:
        raise ValidationError(f"Tutorial {data.tutorial_id} does not exist", field="tutorial_id")

    if data.parent_id is not None:
        parent = await store.get_comment(db, data.parent_id)
        if parent is None:
            raise ValidationError(f"Parent comment {data.parent_id} does not exist", field="parent_id")
        if parent.tutorial_id != data.tutorial_id:
            raise ValidationError(
                "Parent comment belongs to a different tutorial", field="parent_id"
            )

    comment = Comment(
        tutorial_id=data.tutorial_id,
        parent_id=data.parent_id,
        author_name=author_name,
        author_email=author_email,
        content=content,
        approved=approve,
    )
    await store.insert(
        db, comment, entity="comment", conflict_field="id", reference_field="tutorial_id"
    )
    logger.info(
        "Created comment id=%s tutorial_id=%s parent_id=%s approved=%s",
        comment.id, comment.tutorial_id, comment.parent_id, comment.approved,
    )
    return comment


async def submit_comment(db: AsyncSession, tutorial_slug: str, data: CommentSubmit) -> Comment:
    """Public submission against a published tutorial; always pending."""
    tutorial = await content_service.get_tutorial_by_slug(db, tutorial_slug)
    payload = CommentCreate(tutorial_id=tutorial.id, **data.model_dump())
    return await create_comment(db, payload)


async def list_comments(
    db: AsyncSession,
    status: CommentFilter = "pending",
    tutorial_id: int | None = None,
) -> list[dict]:
    """
    Return moderation rows (newest first) as plain dicts.

    Each row carries the tutorial's title/slug, ``reply_count`` and
    ``orphaned``.
    """
    if status not in _FILTER_TO_APPROVED:
        raise ValidationError(f"Unknown comment filter {status!r}", field="status")

    rows = await store.list_comments(db, _FILTER_TO_APPROVED[status], tutorial_id)
    return [_comment_row_to_dict(row) for row in rows]


def _comment_row_to_dict(row: dict) -> dict:
    comment: Comment = row["comment"]
    return {
        "id": comment.id,
        "tutorial_id": comment.tutorial_id,
        "parent_id": comment.parent_id,
        "author_name": comment.author_name,
        "author_email": comment.author_email,
        "content": comment.content,
        "approved": comment.approved,
        "created_at": comment.created_at,
        "tutorial_title": row["tutorial_title"],
        "tutorial_slug": row["tutorial_slug"],
        "reply_count": row["reply_count"],
        "orphaned": row["orphaned"],
    }


async def list_tutorial_comments(db: AsyncSession, tutorial_slug: str) -> list[dict]:
    """
    Approved comments of a published tutorial, threaded one level deep.

    Top-level entries are newest first; replies (at any depth) are
    attached to their top-level ancestor, oldest first.  A reply whose
    parent is missing or unapproved is shown at the top level.
    """
    tutorial = await content_service.get_tutorial_by_slug(db, tutorial_slug)
    comments = await store.approved_comments_for_tutorial(db, tutorial.id)
    visible = {c.id: c for c in comments}

    def root_of(comment: Comment) -> Comment:
        seen = {comment.id}
        current = comment
        while current.parent_id is not None and current.parent_id in visible:
            current = visible[current.parent_id]
            if current.id in seen:
                break
            seen.add(current.id)
        return current

    threads: dict[int, dict] = {}
    order: list[int] = []
    for comment in comments:
        root = root_of(comment)
        if root.id not in threads:
            threads[root.id] = {**_public_dict(root), "replies": []}
            order.append(root.id)
        if root.id != comment.id:
            threads[root.id]["replies"].append(_public_dict(comment))

    # comments arrive oldest first; top-level threads are shown newest first
    return [threads[root_id] for root_id in reversed(order)]


def _public_dict(comment: Comment) -> dict:
    return {
        "id": comment.id,
        "parent_id": comment.parent_id,
        "author_name": comment.author_name,
        "content": comment.content,
        "created_at": comment.created_at,
    }


async def approve_comment(db: AsyncSession, comment_id: int) -> Comment:
    """Idempotent: approving an approved comment succeeds without change."""
    comment = await store.mark_comment_approved(db, comment_id)
    if comment is None:
        raise NotFoundError(f"Comment {comment_id} not found", field="id")
    logger.info("Approved comment id=%s", comment_id)
    return comment


async def delete_comment(db: AsyncSession, comment_id: int) -> None:
    """Permanently delete one comment; its replies are left in place."""
    if not await store.delete_comment(db, comment_id):
        raise NotFoundError(f"Comment {comment_id} not found", field="id")
    logger.info("Deleted comment id=%s", comment_id)
