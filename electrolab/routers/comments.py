from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from electrolab.auth import require_admin
from electrolab.database import get_db
from electrolab.schemas import (
    AdminCommentCreate,
    CommentAction,
    CommentFilter,
    CommentListResponse,
    CommentResponse,
    MessageResponse,
)
from electrolab.services import comment_service

router = APIRouter(
    prefix="/api/v1/admin/comments",
    tags=["admin:comments"],
    dependencies=[Depends(require_admin)],
)

@router.get("", response_model=CommentListResponse)
async def list_comments(
    status: CommentFilter = Query("pending", description="Moderation queue filter."),
    approved: bool | None = Query(None, description="Overrides status when given."),
    tutorial_id: int | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    if approved is not None:
        status = "approved" if approved else "pending"
    comments = await comment_service.list_comments(db, status, tutorial_id)
    return {"comments": comments, "total": len(comments)}

@router.post("", status_code=201, response_model=CommentResponse)
async def create_comment(data: AdminCommentCreate, db: AsyncSession = Depends(get_db)):
    return await comment_service.create_comment(db, data, approve=data.approved)

@router.patch("/{comment_id}", response_model=MessageResponse)
async def moderate_comment(comment_id: int, data: CommentAction, db: AsyncSession = Depends(get_db)):
    if data.action != "approve":
        raise HTTPException(status_code=400, detail="Invalid action")
    await comment_service.approve_comment(db, comment_id)
    return MessageResponse(message="Comment approved successfully")

@router.delete("/{comment_id}", response_model=MessageResponse)
async def delete_comment(comment_id: int, db: AsyncSession = Depends(get_db)):
    await comment_service.delete_comment(db, comment_id)
    return MessageResponse(message="Comment deleted successfully")
