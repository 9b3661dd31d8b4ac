"""
User service — registration, login and the user read models.

The profile read (``get_user_by_id``) expands the follow graph in both
directions with explicit joins against ``follows``; passwords never leave
this module.
"""
import logging

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from threads_api.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from threads_api.models import Follow, User
from threads_api.security import TokenCodec, hash_password, verify_password

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 5

# Same message for unknown email and wrong password.
_BAD_CREDENTIALS = "Invalid email/password"


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def user_to_public_dict(user: User) -> dict:
    """Public projection of a user: everything except the password."""
    return {
        "id": user.id,
        "name": user.name,
        "username": user.username,
        "email": user.email,
    }


def _require(value: str | None, label: str) -> None:
    if not value:
        raise ValidationError(f"{label} is required")


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def register(
    db: AsyncSession,
    name: str | None,
    username: str | None,
    email: str | None,
    password: str | None,
) -> str:
    """
    Create a user account and return a confirmation message.

    Email and username uniqueness are checked up front for a readable
    error; the unique indexes on ``users`` catch the race where two
    registrations pass those checks concurrently.
    """
    _require(name, "Name")
    _require(username, "Username")
    _require(email, "Email")
    _require(password, "Password")

    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )

    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        raise ValidationError("Invalid email format")

    existing = await db.execute(select(User.id).where(User.email == email))
    if existing.first() is not None:
        raise ConflictError("Email is already registered")

    existing = await db.execute(select(User.id).where(User.username == username))
    if existing.first() is not None:
        raise ConflictError("Username is already taken")

    user = User(
        name=name,
        username=username,
        email=email,
        password=hash_password(password),
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError:
        raise ConflictError("Email or username is already registered")

    logger.info("Registered user id=%s username=%r", user.id, user.username)
    return "Register success"


async def login(
    db: AsyncSession,
    codec: TokenCodec,
    email: str | None,
    password: str | None,
) -> str:
    """Return a signed token for valid credentials."""
    _require(email, "Email")
    _require(password, "Password")

    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user is None or not verify_password(password, user.password):
        logger.warning("Failed login for email=%r", email)
        raise AuthenticationError(_BAD_CREDENTIALS)

    return codec.issue({"id": user.id, "email": user.email, "username": user.username})


async def get_users(db: AsyncSession) -> list[dict]:
    result = await db.execute(select(User).order_by(User.id))
    return [user_to_public_dict(u) for u in result.scalars().all()]


async def get_user_by_id(db: AsyncSession, user_id: int | None) -> dict:
    """
    Return the public profile of *user_id* with both sides of its follow
    graph:

    - ``following``: users this user follows (edges where it is follower).
    - ``followers``: users following this user (edges where it is followed).

    Both lists keep edge-creation order.  Raises NotFoundError when the
    user does not exist.
    """
    if user_id is None:
        raise ValidationError("UserId is required")

    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")

    following_q = (
        select(User)
        .join(Follow, Follow.following_id == User.id)
        .where(Follow.follower_id == user_id)
        .order_by(Follow.created_at, Follow.id)
    )
    followers_q = (
        select(User)
        .join(Follow, Follow.follower_id == User.id)
        .where(Follow.following_id == user_id)
        .order_by(Follow.created_at, Follow.id)
    )
    following = (await db.execute(following_q)).scalars().all()
    followers = (await db.execute(followers_q)).scalars().all()

    data = user_to_public_dict(user)
    data["following"] = [user_to_public_dict(u) for u in following]
    data["followers"] = [user_to_public_dict(u) for u in followers]
    return data


async def get_user_by_name(db: AsyncSession, username: str | None) -> list[dict]:
    """Case-insensitive substring search on username (unbounded)."""
    _require(username, "Username")

    pattern = f"%{_escape_like(username)}%"
    q = (
        select(User)
        .where(User.username.ilike(pattern, escape="\\"))
        .order_by(User.username)
    )
    result = await db.execute(q)
    return [user_to_public_dict(u) for u in result.scalars().all()]
