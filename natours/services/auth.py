"""Authentication service: signup, login, password reset and password change."""

import hashlib
import logging
import secrets
from datetime import datetime, timedelta

import bcrypt
from sqlalchemy import func
from sqlalchemy.orm import Session

from natours.config import get_settings
from natours.database import commit_or_conflict, utcnow
from natours.errors import (
    AuthenticationError,
    ConflictError,
    EmailDeliveryError,
    InvalidResetTokenError,
    NotFoundError,
    ValidationError,
)
from natours.models.user import Role, User
from natours.services.email import get_email_service
from natours.services.lockout import LockoutPolicy

logger = logging.getLogger("natours")

DUPLICATE_EMAIL = "Email already registered"


def hash_password(password: str) -> str:
    rounds = get_settings().BCRYPT_ROUNDS
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


def hash_reset_token(token: str) -> str:
    """One-way digest under which a reset token is stored."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def find_active_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(func.lower(User.email) == email.lower().strip(), User.active.is_(True)).first()


class AuthService:
    """Handles user registration, authentication and password lifecycle."""

    def __init__(self, lockout: LockoutPolicy | None = None) -> None:
        self.lockout = lockout or LockoutPolicy()

    def set_password(self, user: User, password: str, now: datetime | None = None) -> None:
        """Hash and store a new password.

        For an existing user this also stamps ``password_changed_at`` one
        second in the past, so tokens issued before the change stop working
        while a token issued right after it does not.
        """
        is_new = user.id is None
        user.password_hash = hash_password(password)
        if not is_new:
            user.password_changed_at = (now or utcnow()) - timedelta(seconds=1)

    def create_user(
        self,
        db: Session,
        name: str,
        email: str,
        password: str,
        role: Role = Role.USER,
        photo: str | None = None,
    ) -> User:
        """Create a user with a hashed password. Raises ConflictError on duplicate email."""
        if db.query(User).filter(func.lower(User.email) == email.lower().strip()).first():
            raise ConflictError(DUPLICATE_EMAIL)

        user = User(
            name=name.strip(),
            email=email.lower().strip(),
            role=role.value,
            photo=photo,
            active=True,
        )
        self.set_password(user, password)
        db.add(user)
        commit_or_conflict(db, DUPLICATE_EMAIL)
        db.refresh(user)
        return user

    def signup(self, db: Session, name: str, email: str, password: str) -> User:
        """Self-service registration. New accounts always get the ``user`` role."""
        user = self.create_user(db, name, email, password, role=Role.USER)
        logger.info("New user signed up: %s", user.id)
        return user

    def login(self, db: Session, email: str | None, password: str | None, now: datetime | None = None) -> User:
        """Check credentials against the user row, enforcing the lockout policy."""
        if not email or not password:
            raise ValidationError("Please provide email and password!")

        user = find_active_user_by_email(db, email)
        if not user:
            raise NotFoundError("Incorrect email or password")

        now = now or utcnow()
        if self.lockout.check(user, now):
            db.commit()

        if not verify_password(password, user.password_hash):
            self.lockout.register_failure(user, now)
            db.commit()
            logger.info("Failed login for user %s (attempt %d)", user.id, user.login_attempts)
            raise AuthenticationError("Incorrect email or password")

        self.lockout.register_success(user)
        db.commit()
        return user

    def request_password_reset(self, db: Session, email: str, base_url: str, now: datetime | None = None) -> None:
        """Store a hashed reset token on the user and email the plaintext token.

        If the email cannot be delivered the token fields are cleared again
        and EmailDeliveryError is raised.
        """
        user = find_active_user_by_email(db, email)
        if not user:
            raise NotFoundError("There is no user with that email address.")

        settings = get_settings()
        token = secrets.token_hex(32)
        user.password_reset_token = hash_reset_token(token)
        user.password_reset_expires_at = (now or utcnow()) + timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES)
        db.commit()

        reset_url = f"{base_url.rstrip('/')}/users/reset-password/{token}"
        try:
            get_email_service().send_password_reset(
                user.email, user.name, reset_url, settings.PASSWORD_RESET_EXPIRE_MINUTES
            )
        except EmailDeliveryError:
            user.password_reset_token = None
            user.password_reset_expires_at = None
            db.commit()
            raise

        logger.info("Password reset requested for user %s", user.id)

    def reset_password(self, db: Session, token: str, new_password: str, now: datetime | None = None) -> User:
        """Consume a reset token and set the new password."""
        now = now or utcnow()
        user = (
            db.query(User)
            .filter(
                User.password_reset_token == hash_reset_token(token),
                User.password_reset_expires_at > now,
                User.active.is_(True),
            )
            .first()
        )
        if not user:
            raise InvalidResetTokenError()

        self.set_password(user, new_password, now)
        user.password_reset_token = None
        user.password_reset_expires_at = None
        db.commit()
        logger.info("Password reset completed for user %s", user.id)
        return user

    def update_password(self, db: Session, user: User, current_password: str, new_password: str) -> User:
        """Change the password of a logged-in user after re-checking the current one."""
        if not verify_password(current_password, user.password_hash):
            raise AuthenticationError("Your current password is wrong.")

        self.set_password(user, new_password)
        db.commit()
        db.refresh(user)
        return user


_auth_service: AuthService | None = None


def get_auth_service() -> AuthService:
    """Get singleton auth service instance."""
    global _auth_service
    if _auth_service is None:
        _auth_service = AuthService()
    return _auth_service
