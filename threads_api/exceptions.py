"""
Domain error taxonomy.

Services raise these; ``main.py`` registers the one handler that turns them
into JSON error responses, so every message here is shown to clients as is.
"""


class AppError(Exception):
    status_code: int = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    """Missing or malformed input."""

    status_code = 400


class ConflictError(AppError):
    """A uniqueness rule would be violated."""

    status_code = 409


class AuthenticationError(AppError):
    """Bad credentials or a missing / unusable bearer token."""

    status_code = 401


class InvalidTokenError(AuthenticationError):
    pass


class NotFoundError(AppError):
    status_code = 404


class SelfFollowError(AppError):
    status_code = 400
