from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


# --- Palettes ---

CategoryColor = Literal[
    "bg-blue-500",
    "bg-green-500",
    "bg-purple-500",
    "bg-red-500",
    "bg-yellow-500",
    "bg-indigo-500",
    "bg-pink-500",
    "bg-orange-500",
]

CategoryIcon = Literal["BookOpen", "Cpu", "Wifi", "Zap", "CircuitBoard", "Settings"]


class Difficulty(str, Enum):
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"


# --- Category ---

class CategoryBase(BaseModel):
    name: str = Field(max_length=150)
    slug: str | None = Field(None, max_length=200)
    description: str | None = None
    color: CategoryColor = "bg-blue-500"
    icon: CategoryIcon = "BookOpen"
    order_index: int | None = Field(None, ge=0)


class CategoryCreate(CategoryBase):
    pass


class CategoryUpdate(BaseModel):
    name: str | None = Field(None, max_length=150)
    slug: str | None = Field(None, max_length=200)
    description: str | None = None
    color: CategoryColor | None = None
    icon: CategoryIcon | None = None
    order_index: int | None = Field(None, ge=0)


class CategoryResponse(BaseModel):
    id: int
    name: str
    slug: str
    description: str | None
    color: str
    icon: str
    order_index: int
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class CategorySummary(BaseModel):
    id: int
    name: str
    slug: str
    color: str
    icon: str
    model_config = ConfigDict(from_attributes=True)


# --- Tutorial ---

class TutorialBase(BaseModel):
    title: str = Field(max_length=300)
    slug: str | None = Field(None, max_length=350)
    description: str = ""
    content: str = ""
    author: str | None = Field(None, max_length=150)
    duration: str | None = Field(None, max_length=50)
    category_id: int
    difficulty: Difficulty = Difficulty.BEGINNER
    tags: list[str] = []
    published: bool = False
    featured_image: str | None = Field(None, max_length=500)


class TutorialCreate(TutorialBase):
    pass


class TutorialUpdate(BaseModel):
    title: str | None = Field(None, max_length=300)
    slug: str | None = Field(None, max_length=350)
    description: str | None = None
    content: str | None = None
    author: str | None = Field(None, max_length=150)
    duration: str | None = Field(None, max_length=50)
    category_id: int | None = None
    difficulty: Difficulty | None = None
    tags: list[str] | None = None
    published: bool | None = None
    featured_image: str | None = Field(None, max_length=500)


class TutorialResponse(BaseModel):
    id: int
    title: str
    slug: str
    description: str
    author: str
    duration: str | None
    category_id: int
    difficulty: Difficulty
    tags: list[str]
    published: bool
    view_count: int
    featured_image: str | None
    created_at: datetime
    updated_at: datetime
    category: CategorySummary | None = None
    model_config = ConfigDict(from_attributes=True)


class TutorialDetail(TutorialResponse):
    content: str


class CategoryDetail(CategoryResponse):
    tutorials: list[TutorialResponse] = []


class ViewCountResponse(BaseModel):
    slug: str
    view_count: int


# --- Comment ---

CommentFilter = Literal["all", "pending", "approved"]


class CommentBase(BaseModel):
    author_name: str = Field(min_length=1, max_length=150)
    author_email: str = Field(min_length=3, max_length=255)
    content: str = Field(min_length=1)
    parent_id: int | None = None


class CommentSubmit(CommentBase):
    """Public submission; the tutorial comes from the URL."""


class CommentCreate(CommentBase):
    tutorial_id: int


class AdminCommentCreate(CommentCreate):
    approved: bool = False


class CommentResponse(BaseModel):
    id: int
    tutorial_id: int
    parent_id: int | None
    author_name: str
    author_email: str
    content: str
    approved: bool
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class CommentListItem(CommentResponse):
    tutorial_title: str | None = None
    tutorial_slug: str | None = None
    reply_count: int = 0
    orphaned: bool = False


class CommentListResponse(BaseModel):
    comments: list[CommentListItem]
    total: int


class CommentAction(BaseModel):
    action: str


class PublicComment(BaseModel):
    id: int
    parent_id: int | None
    author_name: str
    content: str
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class CommentThread(PublicComment):
    replies: list[PublicComment] = []


class MessageResponse(BaseModel):
    success: bool = True
    message: str


# --- Analytics ---

class PageViewCreate(BaseModel):
    page: str = Field(min_length=1, max_length=500)
    page_title: str | None = Field(None, max_length=300)
    session_id: str = Field(min_length=1, max_length=100)
    referrer: str | None = Field(None, max_length=500)
    device_type: str | None = Field(None, max_length=20)
    browser: str | None = Field(None, max_length=50)
    timestamp: datetime | None = None


class PageCount(BaseModel):
    page: str
    views: int


class ReferrerCount(BaseModel):
    referrer: str
    visits: int


class DailyCount(BaseModel):
    date: str
    views: int


class DeviceCount(BaseModel):
    type: str
    count: int


class BrowserCount(BaseModel):
    browser: str
    count: int


class AnalyticsSummary(BaseModel):
    days: int
    total_page_views: int
    unique_visitors: int
    average_session_duration: float
    top_pages: list[PageCount]
    top_referrers: list[ReferrerCount]
    daily_views: list[DailyCount]
    device_types: list[DeviceCount]
    browser_stats: list[BrowserCount]


class TutorialAnalytics(BaseModel):
    tutorial_slug: str
    days: int
    total_views: int
    unique_visitors: int
    average_duration: float
    daily_views: list[DailyCount]


class AnalyticsResponse(BaseModel):
    analytics: AnalyticsSummary | TutorialAnalytics


# --- Dashboard ---

class DashboardCounts(BaseModel):
    total_tutorials: int
    published_tutorials: int
    draft_tutorials: int
    total_views: int
    total_categories: int
    pending_comments: int
    approved_comments: int


class DashboardResponse(DashboardCounts):
    recent_tutorials: list[TutorialResponse] = []
    cache_info: dict = {}
