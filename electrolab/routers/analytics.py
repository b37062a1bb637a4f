from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from electrolab.auth import require_admin
from electrolab.database import get_db
from electrolab.dependencies import AnalyticsWindowParams
from electrolab.schemas import AnalyticsResponse
from electrolab.services import analytics_service

router = APIRouter(
    prefix="/api/v1/admin/analytics",
    tags=["admin:analytics"],
    dependencies=[Depends(require_admin)],
)

@router.get("", response_model=AnalyticsResponse)
async def get_analytics(
    window: AnalyticsWindowParams = Depends(),
    tutorial: str | None = Query(None, description="Tutorial slug for a per-tutorial report."),
    db: AsyncSession = Depends(get_db),
):
    if tutorial:
        analytics = await analytics_service.get_tutorial_analytics(db, tutorial, window.days)
    else:
        analytics = await analytics_service.get_summary(db, window.days)
    return {"analytics": analytics}
