from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from threads_api.auth import Identity, require_identity
from threads_api.database import get_db
from threads_api.schemas import FollowCreate, FollowResponse
from threads_api.services import follow_service

router = APIRouter(prefix="/api/v1/follows", tags=["follows"])

@router.post("", status_code=201, response_model=FollowResponse)
async def follow_user(
    data: FollowCreate,
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    # The follower is always the caller, never a body field.
    return await follow_service.follow_user(db, identity.id, data.following_id)
