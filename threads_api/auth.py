"""
Per-request authorization.

Every route receives an ``AuthContext`` built from the raw ``Authorization``
header.  Building it is free and never fails; the token is only checked
when a protected route asks for the caller through ``require_identity``.
``login`` and ``register`` simply never ask.
"""
from dataclasses import dataclass

from fastapi import Depends, Header

from threads_api.exceptions import AuthenticationError
from threads_api.security import TokenCodec, get_token_codec


@dataclass(frozen=True)
class Identity:
    """Caller identity taken from a verified bearer token."""

    id: int
    email: str
    username: str


class AuthContext:
    def __init__(self, authorization: str | None, codec: TokenCodec) -> None:
        self._authorization = authorization
        self._codec = codec
        self._identity: Identity | None = None

    @property
    def is_authenticated(self) -> bool:
        return self._identity is not None

    def require_identity(self) -> Identity:
        """
        Return the verified caller, resolving the token on first use.

        Raises AuthenticationError when the header is missing ("Invalid
        token") or not of the form ``Bearer <token>`` ("Unauthorized");
        codec failures propagate as InvalidTokenError.
        """
        if self._identity is not None:
            return self._identity

        if not self._authorization:
            raise AuthenticationError("Invalid token")

        parts = self._authorization.split(" ")
        if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
            raise AuthenticationError("Unauthorized")
        token = parts[1]

        claims = self._codec.verify(token)
        self._identity = Identity(
            id=int(claims["id"]),
            email=claims["email"],
            username=claims["username"],
        )
        return self._identity


def get_auth_context(
    authorization: str | None = Header(None),
    codec: TokenCodec = Depends(get_token_codec),
) -> AuthContext:
    return AuthContext(authorization, codec)


def require_identity(ctx: AuthContext = Depends(get_auth_context)) -> Identity:
    """Dependency for protected routes."""
    return ctx.require_identity()
