from fastapi import Query

from electrolab.config import settings


class TutorialQueryParams:
    """
    Reusable FastAPI dependency for tutorial list filters.

    Usage in a router::

        @router.get("/tutorials")
        async def list_tutorials(params: TutorialQueryParams = Depends()):
            ...

    Attributes
    ----------
    category:
        Category slug; narrows the listing at the database.
    published:
        ``True``/``False`` narrows the admin listing to published rows or
        drafts.  ``None`` returns both.  Ignored on the public path, which
        only ever sees published tutorials.
    q:
        Case-insensitive substring matched against title and description.
    tag:
        Tag that must be present on the tutorial.
    """

    def __init__(
        self,
        category: str | None = Query(None, description="Category slug."),
        published: bool | None = Query(None, description="Filter by published flag."),
        q: str | None = Query(None, max_length=200, description="Search in title/description."),
        tag: str | None = Query(None, max_length=100, description="Required tag."),
    ) -> None:
        self.category = category
        self.published = published
        self.q = q
        self.tag = tag


class AnalyticsWindowParams:
    """Look-back window for analytics roll-ups, clamped to the configured maximum."""

    def __init__(
        self,
        days: int = Query(
            settings.ANALYTICS_DEFAULT_DAYS,
            ge=1,
            description="Number of days to aggregate, counting today.",
        ),
    ) -> None:
        self.days = min(days, settings.ANALYTICS_MAX_DAYS)
