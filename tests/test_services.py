"""
Direct service-layer tests — business rules without HTTP in the way.

These call the service functions with a database session and assert on
the domain errors they raise, which the endpoint tests only see after
translation into status codes.
"""
import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from threads_api.cache import CacheManager
from threads_api.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    SelfFollowError,
    ValidationError,
)
from threads_api.models import User
from threads_api.security import TokenCodec
from threads_api.services import follow_service, post_service, user_service

codec = TokenCodec("svc-secret")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _register(db: AsyncSession, username: str, password: str = "secret123") -> int:
    await user_service.register(db, username.title(), username, f"{username}@example.com", password)
    result = await user_service.get_user_by_name(db, username)
    return next(u["id"] for u in result if u["username"] == username)


# ---------------------------------------------------------------------------
# user_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_register_then_login(db_session: AsyncSession):
    assert await user_service.register(
        db_session, "Alice", "alice", "alice@example.com", "secret123"
    ) == "Register success"

    token = await user_service.login(db_session, codec, "alice@example.com", "secret123")
    claims = codec.verify(token)
    assert claims["username"] == "alice"
    assert claims["email"] == "alice@example.com"


@pytest.mark.asyncio
async def test_register_stores_hashed_password(db_session: AsyncSession):
    user_id = await _register(db_session, "alice")
    user = await db_session.get(User, user_id)
    assert user.password != "secret123"
    assert user.password.startswith("$2")


@pytest.mark.asyncio
@pytest.mark.parametrize("password", ["", "a", "abcd"])
async def test_register_short_password_always_fails(db_session: AsyncSession, password: str):
    with pytest.raises(ValidationError):
        await user_service.register(db_session, "Alice", "alice", "alice@example.com", password)


@pytest.mark.asyncio
async def test_register_password_of_minimum_length(db_session: AsyncSession):
    await user_service.register(db_session, "Alice", "alice", "alice@example.com", "abcde")


@pytest.mark.asyncio
async def test_register_duplicate_email_with_new_username(db_session: AsyncSession):
    await _register(db_session, "alice")
    with pytest.raises(ConflictError, match="Email"):
        await user_service.register(db_session, "Other", "someone_else", "alice@example.com", "secret123")


@pytest.mark.asyncio
async def test_register_duplicate_username(db_session: AsyncSession):
    await _register(db_session, "alice")
    with pytest.raises(ConflictError, match="Username"):
        await user_service.register(db_session, "Alice", "alice", "new@example.com", "secret123")


@pytest.mark.asyncio
async def test_login_messages_identical(db_session: AsyncSession):
    await _register(db_session, "alice")

    with pytest.raises(AuthenticationError) as wrong_password:
        await user_service.login(db_session, codec, "alice@example.com", "nope-nope")
    with pytest.raises(AuthenticationError) as unknown_email:
        await user_service.login(db_session, codec, "ghost@example.com", "secret123")

    assert str(wrong_password.value) == str(unknown_email.value) == "Invalid email/password"


@pytest.mark.asyncio
async def test_get_users_strips_passwords(db_session: AsyncSession):
    await _register(db_session, "u1")
    await _register(db_session, "u2")
    users = await user_service.get_users(db_session)
    assert len(users) == 2
    assert all("password" not in u for u in users)


@pytest.mark.asyncio
async def test_get_user_by_id_graph(db_session: AsyncSession):
    alice = await _register(db_session, "alice")
    bob = await _register(db_session, "bob")
    carol = await _register(db_session, "carol")
    dave = await _register(db_session, "dave")

    await follow_service.follow_user(db_session, alice, bob)
    await follow_service.follow_user(db_session, bob, alice)
    await follow_service.follow_user(db_session, carol, alice)
    await follow_service.follow_user(db_session, dave, bob)

    profile = await user_service.get_user_by_id(db_session, alice)
    assert {u["id"] for u in profile["following"]} == {bob}
    assert {u["id"] for u in profile["followers"]} == {bob, carol}
    assert "password" not in profile
    assert all("password" not in u for u in profile["following"] + profile["followers"])


@pytest.mark.asyncio
async def test_get_user_by_id_not_found(db_session: AsyncSession):
    with pytest.raises(NotFoundError):
        await user_service.get_user_by_id(db_session, 99999)


@pytest.mark.asyncio
async def test_get_user_by_name_requires_query(db_session: AsyncSession):
    with pytest.raises(ValidationError):
        await user_service.get_user_by_name(db_session, "")


# ---------------------------------------------------------------------------
# post_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_post_unknown_author(db_session: AsyncSession):
    with pytest.raises(NotFoundError):
        await post_service.create_post(db_session, "orphan", [], None, 99999)


@pytest.mark.asyncio
async def test_create_post_requires_content(db_session: AsyncSession):
    alice = await _register(db_session, "alice")
    with pytest.raises(ValidationError):
        await post_service.create_post(db_session, "", None, None, alice)


@pytest.mark.asyncio
async def test_feed_round_trip_through_cache(db_session: AsyncSession, feed_cache: CacheManager):
    """N cached posts, a create plus invalidation, then N + 1 posts."""
    alice = await _register(db_session, "alice")
    for i in range(2):
        await post_service.create_post(db_session, f"p{i}", None, None, alice)

    feed = await post_service.get_posts(db_session, feed_cache)
    assert len(feed) == 2
    assert await feed_cache.get_feed() == feed

    new_post = await post_service.create_post(db_session, "p2", ["new"], None, alice)

    # Until invalidation the cached snapshot is served.
    assert len(await post_service.get_posts(db_session, feed_cache)) == 2

    await feed_cache.invalidate_feed()
    feed = await post_service.get_posts(db_session, feed_cache)
    assert len(feed) == 3
    assert feed[0]["id"] == new_post["id"]
    assert feed[0]["author"]["username"] == "alice"


@pytest.mark.asyncio
async def test_feed_rebuild_racing_a_write_is_not_cached(
    db_session: AsyncSession, feed_cache: CacheManager, redis_backend, session_factory, monkeypatch,
):
    """A post committed and invalidated between the rebuild's query and its
    write-back must be visible on the next read."""
    alice = await _register(db_session, "alice")
    await post_service.create_post(db_session, "old", None, None, alice)
    await db_session.commit()

    store_set = redis_backend.set

    async def set_after_concurrent_write(key, value, ex=None):
        monkeypatch.setattr(redis_backend, "set", store_set)
        async with session_factory() as other:
            await post_service.create_post(other, "new", None, None, alice)
            await other.commit()
        await feed_cache.invalidate_feed()
        return await store_set(key, value, ex=ex)

    monkeypatch.setattr(redis_backend, "set", set_after_concurrent_write)

    feed = await post_service.get_posts(db_session, feed_cache)
    assert [p["content"] for p in feed] == ["old"]
    assert "posts" not in redis_backend.store

    feed = await post_service.get_posts(db_session, feed_cache)
    assert [p["content"] for p in feed] == ["new", "old"]


@pytest.mark.asyncio
async def test_feed_keeps_posts_with_missing_author(db_session: AsyncSession, feed_cache: CacheManager):
    alice = await _register(db_session, "alice")
    await post_service.create_post(db_session, "soon orphaned", None, None, alice)
    await db_session.delete(await db_session.get(User, alice))
    await db_session.flush()

    feed = await post_service.get_posts(db_session, feed_cache)
    assert len(feed) == 1
    assert feed[0]["author"] is None
    assert feed[0]["author_id"] == alice


@pytest.mark.asyncio
async def test_get_post_by_id_not_found(db_session: AsyncSession):
    with pytest.raises(NotFoundError):
        await post_service.get_post_by_id(db_session, 99999)


@pytest.mark.asyncio
async def test_add_comment_returns_only_new_comment(db_session: AsyncSession):
    alice = await _register(db_session, "alice")
    post = await post_service.create_post(db_session, "hi", None, None, alice)

    await post_service.add_comment(db_session, "first", post["id"], "alice")
    comment = await post_service.add_comment(db_session, "second", post["id"], "bob")
    assert comment["content"] == "second"
    assert comment["username"] == "bob"

    detail = await post_service.get_post_by_id(db_session, post["id"])
    assert [c["content"] for c in detail["comments"]] == ["first", "second"]


@pytest.mark.asyncio
async def test_add_comment_requires_username(db_session: AsyncSession):
    alice = await _register(db_session, "alice")
    post = await post_service.create_post(db_session, "hi", None, None, alice)
    with pytest.raises(ValidationError):
        await post_service.add_comment(db_session, "text", post["id"], None)


@pytest.mark.asyncio
async def test_add_comment_unknown_post(db_session: AsyncSession):
    with pytest.raises(NotFoundError):
        await post_service.add_comment(db_session, "text", 99999, "alice")


@pytest.mark.asyncio
async def test_add_like_twice_keeps_both(db_session: AsyncSession):
    alice = await _register(db_session, "alice")
    post = await post_service.create_post(db_session, "hi", None, None, alice)

    await post_service.add_like(db_session, post["id"], "alice")
    await post_service.add_like(db_session, post["id"], "alice")

    detail = await post_service.get_post_by_id(db_session, post["id"])
    assert [lk["username"] for lk in detail["likes"]] == ["alice", "alice"]


@pytest.mark.asyncio
async def test_add_like_unknown_post(db_session: AsyncSession):
    with pytest.raises(NotFoundError):
        await post_service.add_like(db_session, 99999, "alice")


# ---------------------------------------------------------------------------
# follow_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_follow_self_rejected(db_session: AsyncSession):
    alice = await _register(db_session, "alice")
    with pytest.raises(SelfFollowError):
        await follow_service.follow_user(db_session, alice, alice)


@pytest.mark.asyncio
async def test_follow_repeat_rejected(db_session: AsyncSession):
    alice = await _register(db_session, "alice")
    bob = await _register(db_session, "bob")

    edge = await follow_service.follow_user(db_session, alice, bob)
    assert edge["follower_id"] == alice
    assert edge["following_id"] == bob

    with pytest.raises(ConflictError):
        await follow_service.follow_user(db_session, alice, bob)


@pytest.mark.asyncio
async def test_follow_missing_ids(db_session: AsyncSession):
    with pytest.raises(ValidationError):
        await follow_service.follow_user(db_session, 1, None)
    with pytest.raises(ValidationError):
        await follow_service.follow_user(db_session, None, 1)


@pytest.mark.asyncio
async def test_follow_unknown_target(db_session: AsyncSession):
    alice = await _register(db_session, "alice")
    with pytest.raises(NotFoundError):
        await follow_service.follow_user(db_session, alice, 99999)
