from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from electrolab.auth import require_admin
from electrolab.cache import cache
from electrolab.database import get_db
from electrolab.schemas import DashboardResponse, TutorialResponse
from electrolab.services import content_service

router = APIRouter(
    prefix="/api/v1/admin/dashboard",
    tags=["admin:dashboard"],
    dependencies=[Depends(require_admin)],
)

@router.get("", response_model=DashboardResponse)
async def get_dashboard(db: AsyncSession = Depends(get_db)):
    counts = await content_service.dashboard_counts(db)
    return DashboardResponse(
        **counts,
        recent_tutorials=[
            TutorialResponse.model_validate(t) for t in await content_service.recent_tutorials(db)
        ],
        cache_info=cache.stats,
    )
