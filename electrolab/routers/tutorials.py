from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from electrolab.auth import require_admin
from electrolab.database import get_db
from electrolab.dependencies import TutorialQueryParams
from electrolab.schemas import TutorialCreate, TutorialDetail, TutorialResponse, TutorialUpdate
from electrolab.services import content_service

router = APIRouter(
    prefix="/api/v1/admin/tutorials",
    tags=["admin:tutorials"],
    dependencies=[Depends(require_admin)],
)

@router.get("", response_model=list[TutorialResponse])
async def list_tutorials(
    params: TutorialQueryParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    # Admin screens always see drafts; ``published`` narrows afterwards.
    tutorials = await content_service.list_tutorials(db, params.category, published_only=False)
    return content_service.filter_tutorials(
        tutorials, search=params.q, tag=params.tag, published=params.published
    )

@router.get("/{tutorial_id}", response_model=TutorialDetail)
async def get_tutorial(tutorial_id: int, db: AsyncSession = Depends(get_db)):
    return await content_service.get_tutorial(db, tutorial_id)

@router.post("", status_code=201, response_model=TutorialDetail)
async def create_tutorial(data: TutorialCreate, db: AsyncSession = Depends(get_db)):
    return await content_service.create_tutorial(db, data)

@router.put("/{tutorial_id}", response_model=TutorialDetail)
async def update_tutorial(tutorial_id: int, data: TutorialUpdate, db: AsyncSession = Depends(get_db)):
    return await content_service.update_tutorial(db, tutorial_id, data)

@router.delete("/{tutorial_id}", status_code=204)
async def delete_tutorial(tutorial_id: int, db: AsyncSession = Depends(get_db)):
    await content_service.delete_tutorial(db, tutorial_id)
