from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from electrolab.cache import CATEGORY_LIST_KEY, cache
from electrolab.config import settings
from electrolab.database import get_db
from electrolab.dependencies import TutorialQueryParams
from electrolab.schemas import (
    CategoryDetail,
    CategoryResponse,
    CommentResponse,
    CommentSubmit,
    CommentThread,
    MessageResponse,
    PageViewCreate,
    TutorialDetail,
    TutorialResponse,
    ViewCountResponse,
)
from electrolab.services import analytics_service, comment_service, content_service

router = APIRouter(prefix="/api/v1", tags=["public"])

@router.get("/categories", response_model=list[CategoryResponse])
async def list_categories(db: AsyncSession = Depends(get_db)):
    async def load():
        return [
            CategoryResponse.model_validate(c).model_dump(mode="json")
            for c in await content_service.list_categories(db)
        ]

    return await cache.remember(CATEGORY_LIST_KEY, settings.CACHE_TTL_CATEGORIES, load)

@router.get("/categories/{slug}", response_model=CategoryDetail)
async def get_category(slug: str, db: AsyncSession = Depends(get_db)):
    category = await content_service.get_category_by_slug(db, slug)
    tutorials = await content_service.list_tutorials(db, category_slug=slug)
    return CategoryDetail(
        **CategoryResponse.model_validate(category).model_dump(),
        tutorials=[TutorialResponse.model_validate(t) for t in tutorials],
    )

@router.get("/tutorials", response_model=list[TutorialResponse])
async def list_tutorials(
    params: TutorialQueryParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    tutorials = await content_service.list_tutorials(db, params.category)
    return content_service.filter_tutorials(tutorials, search=params.q, tag=params.tag)

@router.get("/tutorials/{slug}", response_model=TutorialDetail)
async def get_tutorial(slug: str, db: AsyncSession = Depends(get_db)):
    return await content_service.get_tutorial_by_slug(db, slug)

@router.post("/tutorials/{slug}/view", response_model=ViewCountResponse)
async def record_tutorial_view(slug: str, db: AsyncSession = Depends(get_db)):
    await content_service.get_tutorial_by_slug(db, slug)
    view_count = await content_service.increment_view_count(db, slug)
    return ViewCountResponse(slug=slug, view_count=view_count)

@router.get("/tutorials/{slug}/comments", response_model=list[CommentThread])
async def list_tutorial_comments(slug: str, db: AsyncSession = Depends(get_db)):
    return await comment_service.list_tutorial_comments(db, slug)

@router.post("/tutorials/{slug}/comments", status_code=201, response_model=CommentResponse)
async def submit_comment(slug: str, data: CommentSubmit, db: AsyncSession = Depends(get_db)):
    return await comment_service.submit_comment(db, slug, data)

@router.post("/analytics/pageview", status_code=201, response_model=MessageResponse)
async def track_page_view(data: PageViewCreate, request: Request, db: AsyncSession = Depends(get_db)):
    await analytics_service.record_page_view(db, data, request.headers.get("user-agent"))
    return MessageResponse(message="Page view recorded")
