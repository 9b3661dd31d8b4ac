"""
Follow service — creates directed follow edges.

Edges are never removed.  The duplicate check below gives a readable
error; the ``uq_follows_follower_following`` constraint rejects the
concurrent case the check cannot see.
"""
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from threads_api.exceptions import (
    ConflictError,
    NotFoundError,
    SelfFollowError,
    ValidationError,
)
from threads_api.models import Follow, User, utcnow

logger = logging.getLogger(__name__)


def follow_to_dict(follow: Follow) -> dict:
    return {
        "id": follow.id,
        "follower_id": follow.follower_id,
        "following_id": follow.following_id,
        "created_at": follow.created_at.isoformat() if follow.created_at else None,
        "updated_at": follow.updated_at.isoformat() if follow.updated_at else None,
    }


async def follow_user(
    db: AsyncSession,
    follower_id: int | None,
    following_id: int | None,
) -> dict:
    """Record that *follower_id* follows *following_id* and return the edge."""
    if following_id is None:
        raise ValidationError("FollowingId is required")
    if follower_id is None:
        raise ValidationError("FollowerId is required")

    if follower_id == following_id:
        raise SelfFollowError("You can't follow yourself")

    target = await db.get(User, following_id)
    if target is None:
        raise NotFoundError("User not found")

    existing = await db.execute(
        select(Follow.id).where(
            Follow.follower_id == follower_id,
            Follow.following_id == following_id,
        )
    )
    if existing.first() is not None:
        raise ConflictError("You already follow this user")

    now = utcnow()
    follow = Follow(
        follower_id=follower_id,
        following_id=following_id,
        created_at=now,
        updated_at=now,
    )
    db.add(follow)
    try:
        await db.flush()
    except IntegrityError:
        raise ConflictError("You already follow this user")

    logger.info("User %s now follows user %s", follower_id, following_id)
    return follow_to_dict(follow)
