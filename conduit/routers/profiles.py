from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from conduit.database import get_db
from conduit.dependencies import get_viewer_id
from conduit.schemas import ProfileEnvelope
from conduit.services import profile_service

router = APIRouter(prefix="/api/profiles", tags=["profiles"])

@router.get("/{username}", response_model=ProfileEnvelope)
async def get_profile(
    username: str,
    viewer_id: int | None = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_db),
):
    return {"profile": await profile_service.get_profile(db, username, viewer_id)}

@router.post("/{username}/follow", response_model=ProfileEnvelope)
async def follow(
    username: str,
    viewer_id: int | None = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_db),
):
    return {"profile": await profile_service.follow(db, username, viewer_id)}

@router.delete("/{username}/follow", response_model=ProfileEnvelope)
async def unfollow(
    username: str,
    viewer_id: int | None = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_db),
):
    return {"profile": await profile_service.unfollow(db, username, viewer_id)}
