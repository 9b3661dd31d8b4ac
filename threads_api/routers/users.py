from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession
from threads_api.auth import Identity, require_identity
from threads_api.database import get_db
from threads_api.schemas import MAX_ID, UserProfile, UserPublic
from threads_api.services import user_service

router = APIRouter(prefix="/api/v1/users", tags=["users"])

@router.get("", response_model=list[UserPublic])
async def list_users(
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.get_users(db)

# Declared before /{user_id} so "search" is not parsed as an id.
@router.get("/search", response_model=list[UserPublic])
async def search_users(
    username: str | None = None,
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.get_user_by_name(db, username)

@router.get("/{user_id}", response_model=UserProfile)
async def get_user(
    user_id: int = Path(..., ge=1, le=MAX_ID),
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.get_user_by_id(db, user_id)
