from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from electrolab.auth import require_admin
from electrolab.database import get_db
from electrolab.schemas import CategoryCreate, CategoryResponse, CategoryUpdate
from electrolab.services import content_service

router = APIRouter(
    prefix="/api/v1/admin/categories",
    tags=["admin:categories"],
    dependencies=[Depends(require_admin)],
)

@router.get("", response_model=list[CategoryResponse])
async def list_categories(db: AsyncSession = Depends(get_db)):
    return await content_service.list_categories(db)

@router.post("", status_code=201, response_model=CategoryResponse)
async def create_category(data: CategoryCreate, db: AsyncSession = Depends(get_db)):
    return await content_service.create_category(db, data)

@router.put("/{category_id}", response_model=CategoryResponse)
async def update_category(category_id: int, data: CategoryUpdate, db: AsyncSession = Depends(get_db)):
    return await content_service.update_category(db, category_id, data)

@router.delete("/{category_id}", status_code=204)
async def delete_category(category_id: int, db: AsyncSession = Depends(get_db)):
    await content_service.delete_category(db, category_id)
