"""
Business rules for the Category and Tutorial aggregates.

Design notes
------------
- Slug uniqueness and category references are checked here before any
  write.  The schema remains the final authority: the store maps a lost
  race to the error the pre-check would have raised (``ConflictError`` for
  a taken slug or a category that gained a tutorial, ``ValidationError``
  for a category that vanished).
- Writes only mark the category cache stale; ``get_db`` drops it after
  the commit.
- Updates apply only the fields present in the payload
  (``model_dump(exclude_unset=True)``); every supplied field replaces the
  stored value wholesale.
- ``view_count`` is never written from an admin payload.  It only moves
  through ``increment_view_count``.
- Functions flush but do not commit; ``get_db`` owns the transaction.
"""
import logging
import re
from typing import Iterable, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from electrolab import store
from electrolab.cache import CATEGORIES_NS, cache
from electrolab.config import settings
from electrolab.errors import ConflictError, NotFoundError, ValidationError, require_text
from electrolab.models import Category, Tutorial
from electrolab.schemas import CategoryCreate, CategoryUpdate, TutorialCreate, TutorialUpdate

logger = logging.getLogger(__name__)

_SLUG_INVALID_RE = re.compile(r"[^a-z0-9]+")


def derive_slug(text: str) -> str:
    """Return a URL-safe slug: lower-case, hyphen-separated, no edge hyphens."""
    return _SLUG_INVALID_RE.sub("-", text.lower()).strip("-")


def _resolve_slug(explicit: str | None, source: str) -> str:
    slug = derive_slug(explicit if explicit else source)
    if not slug:
        raise ValidationError("slug must contain at least one letter or digit", field="slug")
    return slug


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

async def list_categories(db: AsyncSession) -> Sequence[Category]:
    """All categories by ``order_index``, ties broken by name."""
    return await store.list_categories(db)


async def get_category_by_slug(db: AsyncSession, slug: str) -> Category:
    category = await store.find_category_by_slug(db, slug)
    if category is None:
        raise NotFoundError(f"Category {slug!r} not found", field="slug")
    return category


async def _ensure_category_slug_free(
    db: AsyncSession, slug: str, exclude_id: int | None = None
) -> None:
    existing = await store.find_category_by_slug(db, slug)
    if existing is not None and existing.id != exclude_id:
        raise ConflictError(f"A category with slug {slug!r} already exists", field="slug")


async def create_category(db: AsyncSession, data: CategoryCreate) -> Category:
    name = require_text(data.name, "name")
    slug = _resolve_slug(data.slug, name)
    await _ensure_category_slug_free(db, slug)

    order_index = data.order_index
    if order_index is None:
        order_index = await store.count_categories(db)

    category = Category(
        name=name,
        slug=slug,
        description=data.description,
        color=data.color,
        icon=data.icon,
        order_index=order_index,
    )
    await store.insert(db, category, entity="category")
    cache.mark_stale(db, CATEGORIES_NS)
    logger.info("Created category id=%s slug=%s", category.id, category.slug)
    return category


async def update_category(db: AsyncSession, category_id: int, data: CategoryUpdate) -> Category:
    category = await store.get_category(db, category_id)
    if category is None:
        raise NotFoundError(f"Category {category_id} not found", field="id")

    changes = data.model_dump(exclude_unset=True)
    if "name" in changes:
        changes["name"] = require_text(changes["name"], "name")
    if "slug" in changes:
        slug = _resolve_slug(changes["slug"], changes.get("name") or category.name)
        if slug != category.slug:
            await _ensure_category_slug_free(db, slug, exclude_id=category.id)
        changes["slug"] = slug
    if changes.get("order_index", 0) is None:
        changes.pop("order_index")
    for field in ("color", "icon"):
        if field in changes and changes[field] is None:
            changes.pop(field)

    for field, value in changes.items():
        setattr(category, field, value)

    await store.flush_changes(db, entity="category")
    cache.mark_stale(db, CATEGORIES_NS)
    logger.info("Updated category id=%s fields=%s", category.id, sorted(changes))
    return category


async def delete_category(db: AsyncSession, category_id: int) -> None:
    category = await store.get_category(db, category_id)
    if category is None:
        raise NotFoundError(f"Category {category_id} not found", field="id")
    if await store.category_has_tutorials(db, category_id):
        raise ConflictError("Category has associated tutorials", field="category_id")

    await store.remove(db, category, entity="category", referenced_by="tutorials")
    cache.mark_stale(db, CATEGORIES_NS)
    logger.info("Deleted category id=%s", category_id)


# ---------------------------------------------------------------------------
# Tutorials
# ---------------------------------------------------------------------------

async def list_tutorials(
    db: AsyncSession,
    category_slug: str | None = None,
    published_only: bool = True,
) -> Sequence[Tutorial]:
    """
    Newest-first tutorials, optionally restricted to one category.

    The public read path always uses the default ``published_only=True``;
    admin screens pass ``False`` to see drafts.
    """
    return await store.list_tutorials(db, category_slug, published_only)


def filter_tutorials(
    tutorials: Iterable[Tutorial],
    search: str | None = None,
    tag: str | None = None,
    category_id: int | None = None,
    published: bool | None = None,
) -> list[Tutorial]:
    """
    Narrow an already-listed set without reordering it.

    *search* matches title or description case-insensitively; *tag* is a
    case-insensitive membership test against the tutorial's tags.
    """
    needle = search.strip().lower() if search and search.strip() else None
    wanted_tag = tag.strip().lower() if tag and tag.strip() else None

    def keep(tutorial: Tutorial) -> bool:
        if needle is not None:
            haystacks = (tutorial.title or "", tutorial.description or "")
            if not any(needle in text.lower() for text in haystacks):
                return False
        if wanted_tag is not None:
            if wanted_tag not in {t.lower() for t in tutorial.tags or []}:
                return False
        if category_id is not None and tutorial.category_id != category_id:
            return False
        if published is not None and tutorial.published != published:
            return False
        return True

    return [t for t in tutorials if keep(t)]


async def get_tutorial(db: AsyncSession, tutorial_id: int) -> Tutorial:
    tutorial = await store.get_tutorial(db, tutorial_id)
    if tutorial is None:
        raise NotFoundError(f"Tutorial {tutorial_id} not found", field="id")
    return tutorial


async def get_tutorial_by_slug(
    db: AsyncSession, slug: str, published_only: bool = True
) -> Tutorial:
    tutorial = await store.find_tutorial_by_slug(db, slug)
    if tutorial is None or (published_only and not tutorial.published):
        raise NotFoundError(f"Tutorial {slug!r} not found", field="slug")
    return tutorial


async def _require_category(db: AsyncSession, category_id: int) -> Category:
    category = await store.get_category(db, category_id)
    if category is None:
        raise ValidationError(f"Category {category_id} does not exist", field="category_id")
    return category


async def _ensure_tutorial_slug_free(
    db: AsyncSession, slug: str, exclude_id: int | None = None
) -> None:
    existing = await store.find_tutorial_by_slug(db, slug)
    if existing is not None and existing.id != exclude_id:
        raise ConflictError(f"A tutorial with slug {slug!r} already exists", field="slug")


def _clean_tags(tags: list[str]) -> list[str]:
    return [t.strip() for t in tags if t and t.strip()]


async def create_tutorial(db: AsyncSession, data: TutorialCreate) -> Tutorial:
    title = require_text(data.title, "title")
    slug = _resolve_slug(data.slug, title)
    category = await _require_category(db, data.category_id)
    await _ensure_tutorial_slug_free(db, slug)

    tutorial = Tutorial(
        title=title,
        slug=slug,
        description=data.description,
        content=data.content,
        author=data.author or settings.DEFAULT_AUTHOR,
        duration=data.duration,
        category_id=category.id,
        difficulty=data.difficulty.value,
        tags=_clean_tags(data.tags),
        published=data.published,
        featured_image=data.featured_image,
        view_count=0,
    )
    tutorial.category = category
    await store.insert(db, tutorial, entity="tutorial", reference_field="category_id")
    logger.info(
        "Created tutorial id=%s slug=%s published=%s", tutorial.id, tutorial.slug, tutorial.published
    )
    return tutorial


async def update_tutorial(db: AsyncSession, tutorial_id: int, data: TutorialUpdate) -> Tutorial:
    tutorial = await get_tutorial(db, tutorial_id)
    changes = data.model_dump(exclude_unset=True)

    # Nullable columns may be cleared; required ones keep their value on null.
    for field in ("title", "description", "content", "author", "category_id",
                  "difficulty", "tags", "published"):
        if field in changes and changes[field] is None:
            changes.pop(field)

    if "title" in changes:
        changes["title"] = require_text(changes["title"], "title")
    if "slug" in changes:
        slug = _resolve_slug(changes["slug"], changes.get("title") or tutorial.title)
        if slug != tutorial.slug:
            await _ensure_tutorial_slug_free(db, slug, exclude_id=tutorial.id)
        changes["slug"] = slug
    if "category_id" in changes and changes["category_id"] != tutorial.category_id:
        tutorial.category = await _require_category(db, changes["category_id"])
    if "difficulty" in changes:
        changes["difficulty"] = changes["difficulty"].value
    if "tags" in changes:
        changes["tags"] = _clean_tags(changes["tags"])

    for field, value in changes.items():
        setattr(tutorial, field, value)

    await store.flush_changes(db, entity="tutorial", reference_field="category_id")
    logger.info("Updated tutorial id=%s fields=%s", tutorial.id, sorted(changes))
    return tutorial


async def delete_tutorial(db: AsyncSession, tutorial_id: int) -> None:
    tutorial = await get_tutorial(db, tutorial_id)
    removed = await store.delete_comments_for_tutorial(db, tutorial_id)
    await store.remove(db, tutorial, entity="tutorial", referenced_by="comments")
    logger.info("Deleted tutorial id=%s with %d comment(s)", tutorial_id, removed)


async def increment_view_count(db: AsyncSession, slug: str) -> int:
    """Add one view to the tutorial; called by the view-tracking collaborator."""
    count = await store.increment_view_count(db, slug)
    if count is None:
        raise NotFoundError(f"Tutorial {slug!r} not found", field="slug")
    return count


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------

async def dashboard_counts(db: AsyncSession) -> dict:
    tutorials = await store.tutorial_counts(db)
    comments = await store.comment_counts(db)
    return {
        "total_tutorials": tutorials["total"],
        "published_tutorials": tutorials["published"],
        "draft_tutorials": tutorials["total"] - tutorials["published"],
        "total_views": tutorials["views"],
        "total_categories": await store.count_categories(db),
        "pending_comments": comments["pending"],
        "approved_comments": comments["approved"],
    }


async def recent_tutorials(db: AsyncSession, limit: int = 5) -> Sequence[Tutorial]:
    return await store.list_tutorials(db, published_only=False, limit=limit)
