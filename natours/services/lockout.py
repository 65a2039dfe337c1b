"""Login-attempt lockout policy.

Each user is either *open* or *blocked*. Failed logins on an open account
count up ``login_attempts``; reaching the limit blocks the account for a
fixed window. The first attempt after the window has passed re-opens the
account and is then evaluated normally.

The counter update is a plain read-modify-write on the loaded row, so two
concurrent failures for the same user may both write the same value. The
count is best-effort under concurrency.
"""

import logging
from datetime import datetime, timedelta

from natours.config import get_settings
from natours.errors import LockoutError
from natours.models.user import User

logger = logging.getLogger("natours")


class LockoutPolicy:
    """Tracks consecutive failed logins and temporarily blocks users."""

    def __init__(self, max_attempts: int | None = None, block_minutes: int | None = None) -> None:
        settings = get_settings()
        self.max_attempts = max_attempts if max_attempts is not None else settings.LOGIN_MAX_ATTEMPTS
        self.block_window = timedelta(
            minutes=block_minutes if block_minutes is not None else settings.LOGIN_BLOCK_MINUTES
        )

    def check(self, user: User, now: datetime) -> bool:
        """Gate a login attempt.

        Raises LockoutError while the block is in force. Returns True if an
        expired block was cleared and the row needs saving.
        """
        if not user.blocked:
            return False

        if user.block_expires_at is not None and now < user.block_expires_at:
            remaining_ms = int((user.block_expires_at - now) / timedelta(milliseconds=1))
            logger.warning("Login attempt for blocked user %s", user.id)
            raise LockoutError(remaining_ms // 1000)

        user.blocked = False
        user.login_attempts = 0
        user.block_expires_at = None
        return True

    def register_failure(self, user: User, now: datetime) -> None:
        """Count a failed attempt, blocking the user once the limit is reached."""
        user.login_attempts = (user.login_attempts or 0) + 1
        if user.login_attempts >= self.max_attempts:
            user.blocked = True
            user.block_expires_at = now + self.block_window
            logger.warning(
                "User %s blocked after %d failed login attempts until %s",
                user.id,
                user.login_attempts,
                user.block_expires_at.isoformat(),
            )

    def register_success(self, user: User) -> None:
        user.login_attempts = 0
