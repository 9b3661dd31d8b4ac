"""
Password hashing and session tokens.
"""
import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from threads_api.config import settings
from threads_api.exceptions import InvalidTokenError

logger = logging.getLogger(__name__)

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)

_IDENTITY_CLAIMS = ("id", "email", "username")


def hash_password(password: str) -> str:
    """Hash a password for storage (fresh salt on every call)."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its stored hash."""
    return pwd_context.verify(plain_password, hashed_password)


class TokenCodec:
    """
    Issues and verifies signed identity tokens (JWT).

    One instance is built at startup from ``settings`` and shared by every
    request.  Construction fails when no secret is configured, which turns
    a missing ``JWT_SECRET`` into a boot-time error instead of a per-request
    one.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        expire_minutes: int | None = None,
    ) -> None:
        if not secret:
            raise RuntimeError("JWT_SECRET is not configured")
        self._secret = secret
        self._algorithm = algorithm
        self._expire_minutes = expire_minutes

    def issue(self, claims: dict) -> str:
        """Sign *claims* (id, email, username) together with the issue time."""
        now = datetime.now(timezone.utc)
        to_encode = {key: claims[key] for key in _IDENTITY_CLAIMS}
        to_encode["iat"] = now
        if self._expire_minutes:
            to_encode["exp"] = now + timedelta(minutes=self._expire_minutes)
        return jwt.encode(to_encode, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> dict:
        """
        Return the claims carried by *token*.

        Raises InvalidTokenError for a bad signature, a malformed or expired
        token, or one that lacks the identity claims.
        """
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except ExpiredSignatureError:
            raise InvalidTokenError("Token has expired")
        except JWTError as exc:
            logger.debug("Token rejected: %s", exc)
            raise InvalidTokenError("Invalid token")

        if any(payload.get(key) is None for key in _IDENTITY_CLAIMS):
            raise InvalidTokenError("Invalid token")
        return payload


@lru_cache
def get_token_codec() -> TokenCodec:
    """Process-wide codec; FastAPI dependency and startup check."""
    return TokenCodec(
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
        expire_minutes=settings.JWT_EXPIRE_MINUTES,
    )
