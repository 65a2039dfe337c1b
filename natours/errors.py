"""Application error hierarchy.

Every error raised on purpose by the service layer is an ``AppError``. Each
class carries the HTTP status it maps to and whether it is *operational*
(an expected failure whose message is safe to show to the caller) or a
programming error that must be hidden outside development mode.
"""

from typing import Optional


class AppError(Exception):
    """Base class for errors mapped to HTTP responses."""

    status_code: int = 500
    is_operational: bool = True
    default_message: str = "Something went wrong"

    def __init__(self, message: Optional[str] = None, *, status_code: Optional[int] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)
        if status_code is not None:
            self.status_code = status_code

    @property
    def status(self) -> str:
        """``fail`` for client errors, ``error`` for server errors."""
        return "fail" if 400 <= self.status_code < 500 else "error"


class ValidationError(AppError):
    """Malformed or missing input (400)."""

    status_code = 400
    default_message = "Invalid input data"


class ConflictError(AppError):
    """Duplicate value for a unique field (400)."""

    status_code = 400
    default_message = "Duplicate field value entered"


class InvalidResetTokenError(ValidationError):
    default_message = "Token is invalid or has expired"


class AuthenticationError(AppError):
    """Missing, invalid or expired credentials (401)."""

    status_code = 401
    default_message = "Incorrect email or password"


class MissingTokenError(AuthenticationError):
    default_message = "You are not logged in! Please log in to get access."


class InvalidTokenError(AuthenticationError):
    default_message = "Invalid token. Please log in again!"


class UserNoLongerExistsError(AuthenticationError):
    default_message = "The user belonging to this token no longer exists."


class PasswordChangedError(AuthenticationError):
    default_message = "User recently changed password! Please log in again."


class LockoutError(AuthenticationError):
    """Login temporarily blocked after too many failed attempts (401)."""

    def __init__(self, remaining_seconds: int) -> None:
        self.remaining_seconds = remaining_seconds
        minutes, seconds = divmod(remaining_seconds, 60)
        super().__init__(
            "You have too many incorrect log in attempts. You are temporarily blocked from logging in. "
            f"Please, wait {minutes} minutes and {seconds} seconds before trying to log in again."
        )


class AuthorizationError(AppError):
    """Authenticated but not allowed (403)."""

    status_code = 403
    default_message = "You do not have permission to perform this action"


class NotFoundError(AppError):
    """Requested resource does not exist (404)."""

    status_code = 404
    default_message = "No document found with that ID"


class DeliveryError(AppError):
    """An external delivery service failed (500)."""

    status_code = 500
    default_message = "External delivery failed"


class EmailDeliveryError(DeliveryError):
    default_message = "There was an error sending the email. Try again later!"


class InternalError(AppError):
    """Unclassified failure; never shown verbatim in production (500)."""

    status_code = 500
    is_operational = False
    default_message = "Something went very wrong!"
