"""
Post service — business logic for the Post aggregate.

Design notes
------------
- The feed (``get_posts``) goes through the cache-aside pattern: the whole
  enriched list is stored under one key with no TTL.  Writes never update
  the cached copy; the router deletes it after committing, so the next read
  rebuilds it from the database.
- ``get_post_by_id`` always reads the database.
- Authors are joined explicitly (``posts.author_id`` carries no foreign
  key).  An outer join keeps posts whose author row is gone, with
  ``author`` set to None.
- Comments and likes are append-only and eager-loaded with
  ``selectinload`` in id order.
- Service functions flush but do not commit; the transaction boundary is
  owned by the router / ``get_db`` dependency.
"""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from threads_api.cache import CacheManager
from threads_api.exceptions import NotFoundError, ValidationError
from threads_api.models import Comment, Like, Post, User, utcnow
from threads_api.services.user_service import user_to_public_dict

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _iso(value) -> str | None:
    return value.isoformat() if value else None


def _comment_to_dict(comment: Comment) -> dict:
    return {
        "content": comment.content,
        "username": comment.username,
        "created_at": _iso(comment.created_at),
        "updated_at": _iso(comment.updated_at),
    }


def _like_to_dict(like: Like) -> dict:
    return {
        "username": like.username,
        "created_at": _iso(like.created_at),
        "updated_at": _iso(like.updated_at),
    }


def _post_to_dict(
    post: Post,
    author: User | None,
    comments: list[Comment] | None = None,
    likes: list[Like] | None = None,
) -> dict:
    """Serialise a post with its author's public fields (never the password)."""
    return {
        "id": post.id,
        "content": post.content,
        "tags": list(post.tags or []),
        "img_url": post.img_url,
        "author_id": post.author_id,
        "author": user_to_public_dict(author) if author is not None else None,
        "comments": [_comment_to_dict(c) for c in (comments or [])],
        "likes": [_like_to_dict(lk) for lk in (likes or [])],
        "created_at": _iso(post.created_at),
        "updated_at": _iso(post.updated_at),
    }


def _enriched_posts_query():
    return (
        select(Post, User)
        .outerjoin(User, User.id == Post.author_id)
        .options(selectinload(Post.comments), selectinload(Post.likes))
        # noload leaves already-seen posts with empty lists; reload them.
        .execution_options(populate_existing=True)
    )


async def _get_post_or_404(db: AsyncSession, post_id: int) -> Post:
    post = await db.get(Post, post_id)
    if post is None:
        raise NotFoundError("Post not found")
    return post


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def create_post(
    db: AsyncSession,
    content: str | None,
    tags: list[str] | None,
    img_url: str | None,
    author_id: int | None,
) -> dict:
    """
    Create a post for *author_id* and return it with its author.

    The caller must invalidate the feed cache once the transaction is
    committed.
    """
    if not content:
        raise ValidationError("Content is required")
    if author_id is None:
        raise ValidationError("AuthorId is required")

    author = await db.get(User, author_id)
    if author is None:
        raise NotFoundError("User not found")

    now = utcnow()
    post = Post(
        content=content,
        tags=list(tags) if tags else [],
        img_url=img_url,
        author_id=author_id,
        created_at=now,
        updated_at=now,
    )
    db.add(post)
    await db.flush()

    logger.info("Created post id=%s author_id=%s", post.id, author_id)
    return _post_to_dict(post, author)


async def get_posts(db: AsyncSession, cache: CacheManager) -> list[dict]:
    """
    Return the full feed, newest first.

    A cache hit is returned verbatim.  On a miss the feed is rebuilt with a
    single posts ⟕ users query (plus one selectin query each for comments
    and likes) and written back to the cache without expiry, unless a post
    write invalidated the feed while the query ran.
    """
    cached = await cache.get_feed()
    if cached is not None:
        return cached

    generation = await cache.feed_generation()
    q = _enriched_posts_query().order_by(Post.created_at.desc(), Post.id.desc())
    result = await db.execute(q)
    feed = [
        _post_to_dict(post, author, post.comments, post.likes)
        for post, author in result.all()
    ]

    await cache.set_feed(feed, generation)
    return feed


async def get_post_by_id(db: AsyncSession, post_id: int | None) -> dict:
    """Return one enriched post, bypassing the feed cache."""
    if post_id is None:
        raise ValidationError("PostId is required")

    q = _enriched_posts_query().where(Post.id == post_id)
    row = (await db.execute(q)).first()
    if row is None:
        raise NotFoundError("Post not found")

    post, author = row
    return _post_to_dict(post, author, post.comments, post.likes)


async def add_comment(
    db: AsyncSession,
    content: str | None,
    post_id: int | None,
    username: str | None,
) -> dict:
    """
    Append a comment by *username* to the post and return only that
    comment.  The post's ``updated_at`` moves forward.
    """
    if not content:
        raise ValidationError("Content is required")
    if not username:
        raise ValidationError("Username is required")
    if post_id is None:
        raise ValidationError("PostId is required")

    post = await _get_post_or_404(db, post_id)

    now = utcnow()
    comment = Comment(
        post_id=post.id,
        content=content,
        username=username,
        created_at=now,
        updated_at=now,
    )
    db.add(comment)
    post.updated_at = now
    await db.flush()
    return _comment_to_dict(comment)


async def add_like(db: AsyncSession, post_id: int | None, username: str | None) -> dict:
    """
    Append a like by *username* and return it.

    Repeated likes by the same user are stored as separate entries.
    """
    if not username:
        raise ValidationError("Username is required")
    if post_id is None:
        raise ValidationError("PostId is required")

    post = await _get_post_or_404(db, post_id)

    now = utcnow()
    like = Like(post_id=post.id, username=username, created_at=now, updated_at=now)
    db.add(like)
    post.updated_at = now
    await db.flush()
    return _like_to_dict(like)
