from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from conduit.database import get_db
from conduit.dependencies import get_viewer_id
from conduit.schemas import UserEnvelope, UserLoginEnvelope, UserRegisterEnvelope, UserSettingsEnvelope
from conduit.services import user_service

router = APIRouter(prefix="/api", tags=["users"])

@router.post("/users", status_code=201, response_model=UserEnvelope)
async def register(payload: UserRegisterEnvelope, db: AsyncSession = Depends(get_db)):
    return {"user": await user_service.register(db, payload.user)}

@router.post("/users/login", response_model=UserEnvelope)
async def login(payload: UserLoginEnvelope, db: AsyncSession = Depends(get_db)):
    return {"user": await user_service.authenticate(db, payload.user)}

@router.get("/user", response_model=UserEnvelope)
async def current_user(
    viewer_id: int | None = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_db),
):
    return {"user": await user_service.get_current_user(db, viewer_id)}

@router.put("/user", response_model=UserEnvelope)
async def update_settings(
    payload: UserSettingsEnvelope,
    viewer_id: int | None = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_db),
):
    return {"user": await user_service.update_settings(db, viewer_id, payload.user)}
