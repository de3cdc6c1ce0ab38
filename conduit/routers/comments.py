from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession
from conduit.database import get_db
from conduit.dependencies import get_viewer_id
from conduit.schemas import CommentCreateEnvelope, CommentEnvelope, CommentListResponse
from conduit.services import comment_service

router = APIRouter(prefix="/api/articles/{slug}/comments", tags=["comments"])

@router.get("", response_model=CommentListResponse)
async def list_comments(
    slug: str,
    viewer_id: int | None = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_db),
):
    return {"comments": await comment_service.list_comments(db, slug, viewer_id)}

@router.post("", status_code=201, response_model=CommentEnvelope)
async def add_comment(
    slug: str,
    payload: CommentCreateEnvelope,
    viewer_id: int | None = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_db),
):
    return {"comment": await comment_service.add_comment(db, slug, viewer_id, payload.comment)}

@router.delete("/{comment_id}", status_code=204)
async def delete_comment(
    slug: str,
    comment_id: int,
    viewer_id: int | None = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_db),
):
    await comment_service.delete_comment(db, slug, comment_id, viewer_id)
    return Response(status_code=204)
