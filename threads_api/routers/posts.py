from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession
from threads_api.auth import Identity, require_identity
from threads_api.cache import CacheManager, get_cache
from threads_api.database import get_db
from threads_api.schemas import MAX_ID, CommentCreate, CommentResponse, LikeResponse, PostCreate, PostResponse
from threads_api.services import post_service

router = APIRouter(prefix="/api/v1/posts", tags=["posts"])

@router.get("", response_model=list[PostResponse])
async def list_posts(
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
):
    return await post_service.get_posts(db, cache)

@router.get("/{post_id}", response_model=PostResponse)
async def get_post(
    post_id: int = Path(..., ge=1, le=MAX_ID),
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    return await post_service.get_post_by_id(db, post_id)

# Post writes commit first and then drop the cached feed, so the response
# is only sent once the next feed read is guaranteed to see the write.

@router.post("", status_code=201, response_model=PostResponse)
async def create_post(
    data: PostCreate,
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
):
    post = await post_service.create_post(db, data.content, data.tags, data.img_url, identity.id)
    await db.commit()
    await cache.invalidate_feed()
    return post

@router.post("/{post_id}/comments", status_code=201, response_model=CommentResponse)
async def add_comment(
    data: CommentCreate,
    post_id: int = Path(..., ge=1, le=MAX_ID),
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
):
    comment = await post_service.add_comment(db, data.content, post_id, identity.username)
    await db.commit()
    await cache.invalidate_feed()
    return comment

@router.post("/{post_id}/likes", status_code=201, response_model=LikeResponse)
async def add_like(
    post_id: int = Path(..., ge=1, le=MAX_ID),
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
):
    like = await post_service.add_like(db, post_id, identity.username)
    await db.commit()
    await cache.invalidate_feed()
    return like
