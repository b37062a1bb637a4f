"""
Analytics service: dashboard roll-ups over raw page-view events.

The aggregation functions are pure.  Each takes an iterable of events
(anything with ``page``, ``timestamp``, ``session_id``, ``referrer``,
``device_type`` and ``browser`` attributes), a window length in days and
a reference ``now``, and never touches the database.

The window runs from UTC midnight ``days - 1`` days before ``now`` up to
``now``, which is exactly the range covered by the ``days`` buckets of
``daily_views``.  Timestamps without tzinfo are read as UTC.

The async functions at the bottom load the window's events through the
store and cache the full summary in Redis.  Recording a page view marks
that cache stale; ``get_db`` drops it once the event is committed.
"""
from __future__ import annotations

import logging
import re
from collections import Counter, defaultdict
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from electrolab import store
from electrolab.cache import ANALYTICS_NS, analytics_summary_key, cache
from electrolab.config import settings
from electrolab.errors import ValidationError
from electrolab.models import PageView
from electrolab.schemas import AnalyticsSummary, PageViewCreate, TutorialAnalytics

logger = logging.getLogger(__name__)

DIRECT_REFERRER = "Direct"


class PageViewLike(Protocol):
    page: str
    timestamp: datetime
    session_id: str
    referrer: str | None
    device_type: str
    browser: str


# ---------------------------------------------------------------------------
# User-Agent classification
# ---------------------------------------------------------------------------

_TABLET_RE = re.compile(r"iPad|Tablet|Android(?!.*Mobile)|Kindle|Silk|PlayBook", re.IGNORECASE)
_MOBILE_RE = re.compile(
    r"Mobile|iPhone|iPod|Android|BlackBerry|Opera Mini|IEMobile|Windows Phone", re.IGNORECASE
)


def detect_device_type(user_agent: str | None) -> str:
    """Classify a User-Agent as ``Mobile``, ``Tablet`` or ``Desktop``."""
    if not user_agent:
        return "Desktop"
    # Tablets first: many tablet agents also match the mobile patterns.
    if _TABLET_RE.search(user_agent):
        return "Tablet"
    if _MOBILE_RE.search(user_agent):
        return "Mobile"
    return "Desktop"


def detect_browser(user_agent: str | None) -> str:
    """Classify a User-Agent as Edge, Chrome, Firefox, Safari or Other."""
    if not user_agent:
        return "Other"
    ua = user_agent.lower()
    # Edge and Chrome both advertise "chrome"; Chrome also advertises "safari".
    if "edg" in ua:
        return "Edge"
    if "chrome" in ua or "crios" in ua:
        return "Chrome"
    if "firefox" in ua or "fxios" in ua:
        return "Firefox"
    if "safari" in ua:
        return "Safari"
    return "Other"


# ---------------------------------------------------------------------------
# Window helpers
# ---------------------------------------------------------------------------

def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _check_days(days: int) -> None:
    if days < 1:
        raise ValidationError("days must be at least 1", field="days")


def window_start(days: int, now: datetime | None = None) -> datetime:
    """UTC midnight of the first day in a *days*-long window ending at *now*."""
    _check_days(days)
    today = _as_utc(now or datetime.now(timezone.utc)).date()
    first_day = today - timedelta(days=days - 1)
    return datetime.combine(first_day, time.min, tzinfo=timezone.utc)


def in_window(
    events: Iterable[PageViewLike], days: int, now: datetime | None = None
) -> list[PageViewLike]:
    now = _as_utc(now or datetime.now(timezone.utc))
    start = window_start(days, now)
    return [e for e in events if start <= _as_utc(e.timestamp) <= now]


def _ranked(counter: Counter, limit: int | None = None) -> list[tuple[str, int]]:
    """Count descending, label ascending on ties."""
    ranked = sorted(counter.items(), key=lambda item: (-item[1], item[0]))
    return ranked[:limit] if limit is not None else ranked


# ---------------------------------------------------------------------------
# Pure roll-ups
# ---------------------------------------------------------------------------

def total_page_views(events: Iterable[PageViewLike], days: int = 30, now: datetime | None = None) -> int:
    return len(in_window(events, days, now))


def unique_visitors(events: Iterable[PageViewLike], days: int = 30, now: datetime | None = None) -> int:
    return len({e.session_id for e in in_window(events, days, now)})


def average_session_duration(
    events: Iterable[PageViewLike], days: int = 30, now: datetime | None = None
) -> float:
    """
    Mean seconds between the first and last event of each session.

    Single-event sessions count as zero-length visits and stay in the
    denominator.  Returns 0.0 when the window holds no sessions.
    """
    bounds: dict[str, list[datetime]] = {}
    for event in in_window(events, days, now):
        moment = _as_utc(event.timestamp)
        span = bounds.get(event.session_id)
        if span is None:
            bounds[event.session_id] = [moment, moment]
        else:
            span[0] = min(span[0], moment)
            span[1] = max(span[1], moment)
    if not bounds:
        return 0.0
    total = sum((last - first).total_seconds() for first, last in bounds.values())
    return round(total / len(bounds), 2)


def top_pages(
    events: Iterable[PageViewLike], days: int = 30, limit: int = 10, now: datetime | None = None
) -> list[dict]:
    counter = Counter(e.page for e in in_window(events, days, now))
    return [{"page": page, "views": views} for page, views in _ranked(counter, limit)]


def top_referrers(
    events: Iterable[PageViewLike], days: int = 30, limit: int = 10, now: datetime | None = None
) -> list[dict]:
    counter = Counter(
        (e.referrer.strip() if e.referrer and e.referrer.strip() else DIRECT_REFERRER)
        for e in in_window(events, days, now)
    )
    return [{"referrer": ref, "visits": visits} for ref, visits in _ranked(counter, limit)]


def device_types(events: Iterable[PageViewLike], days: int = 30, now: datetime | None = None) -> list[dict]:
    counter = Counter(e.device_type for e in in_window(events, days, now))
    return [{"type": kind, "count": count} for kind, count in _ranked(counter)]


def browser_stats(events: Iterable[PageViewLike], days: int = 30, now: datetime | None = None) -> list[dict]:
    counter = Counter(e.browser for e in in_window(events, days, now))
    return [{"browser": name, "count": count} for name, count in _ranked(counter)]


def daily_views(events: Iterable[PageViewLike], days: int = 30, now: datetime | None = None) -> list[dict]:
    """One bucket per UTC day in the window, oldest first, zero-filled."""
    now = _as_utc(now or datetime.now(timezone.utc))
    first_day: date = window_start(days, now).date()
    per_day: defaultdict[date, int] = defaultdict(int)
    for event in in_window(events, days, now):
        per_day[_as_utc(event.timestamp).date()] += 1
    return [
        {"date": day.isoformat(), "views": per_day[day]}
        for day in (first_day + timedelta(days=offset) for offset in range(days))
    ]


def summarize(
    events: Iterable[PageViewLike],
    days: int = 30,
    now: datetime | None = None,
    limit: int = 10,
) -> AnalyticsSummary:
    now = _as_utc(now or datetime.now(timezone.utc))
    windowed = in_window(list(events), days, now)
    return AnalyticsSummary(
        days=days,
        total_page_views=total_page_views(windowed, days, now),
        unique_visitors=unique_visitors(windowed, days, now),
        average_session_duration=average_session_duration(windowed, days, now),
        top_pages=top_pages(windowed, days, limit, now),
        top_referrers=top_referrers(windowed, days, limit, now),
        daily_views=daily_views(windowed, days, now),
        device_types=device_types(windowed, days, now),
        browser_stats=browser_stats(windowed, days, now),
    )


def tutorial_page_prefix(slug: str) -> str:
    return f"/tutorial/{slug}"


def _is_tutorial_page(page: str, slug: str) -> bool:
    prefix = tutorial_page_prefix(slug)
    return page == prefix or page.startswith(prefix + "/") or page.startswith(prefix + "?")


def tutorial_analytics(
    events: Iterable[PageViewLike],
    slug: str,
    days: int = 30,
    now: datetime | None = None,
) -> TutorialAnalytics:
    """Views, visitors, session length and daily series for one tutorial's pages."""
    now = _as_utc(now or datetime.now(timezone.utc))
    scoped = [e for e in in_window(list(events), days, now) if _is_tutorial_page(e.page, slug)]
    return TutorialAnalytics(
        tutorial_slug=slug,
        days=days,
        total_views=len(scoped),
        unique_visitors=unique_visitors(scoped, days, now),
        average_duration=average_session_duration(scoped, days, now),
        daily_views=daily_views(scoped, days, now),
    )


# ---------------------------------------------------------------------------
# Database-backed entry points
# ---------------------------------------------------------------------------

async def get_summary(db: AsyncSession, days: int | None = None) -> AnalyticsSummary:
    """Return the dashboard summary for the last *days* days, cache-aside."""
    if days is None:
        days = settings.ANALYTICS_DEFAULT_DAYS
    _check_days(days)

    async def load() -> dict:
        now = datetime.now(timezone.utc)
        events = await store.page_views_since(db, window_start(days, now))
        return summarize(events, days, now, limit=settings.ANALYTICS_TOP_LIMIT).model_dump()

    cached = await cache.remember(analytics_summary_key(days), settings.CACHE_TTL_ANALYTICS, load)
    return AnalyticsSummary(**cached)


async def get_tutorial_analytics(
    db: AsyncSession, slug: str, days: int | None = None
) -> TutorialAnalytics:
    if days is None:
        days = settings.ANALYTICS_DEFAULT_DAYS
    _check_days(days)
    now = datetime.now(timezone.utc)
    events = await store.page_views_since(
        db, window_start(days, now), page_prefix=tutorial_page_prefix(slug)
    )
    return tutorial_analytics(events, slug, days, now)


async def record_page_view(
    db: AsyncSession, data: PageViewCreate, user_agent: str | None = None
) -> PageView:
    """
    Append one page-view event.

    Device and browser come from the payload when supplied, otherwise from
    the User-Agent header.  Deciding *when* to record (e.g. debouncing) is
    the caller's business.
    """
    timestamp = _as_utc(data.timestamp) if data.timestamp else datetime.now(timezone.utc)
    view = PageView(
        page=data.page,
        page_title=data.page_title,
        timestamp=timestamp,
        session_id=data.session_id,
        referrer=data.referrer or None,
        device_type=data.device_type or detect_device_type(user_agent),
        browser=data.browser or detect_browser(user_agent),
        user_agent=user_agent[:500] if user_agent else None,
    )
    await store.append_page_view(db, view)
    cache.mark_stale(db, ANALYTICS_NS)
    logger.debug("Recorded page view page=%s session=%s", view.page, view.session_id)
    return view
