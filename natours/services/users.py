"""User service for profile management and admin user CRUD."""

from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Query, Session

from natours.database import commit_or_conflict
from natours.errors import ConflictError, NotFoundError
from natours.models.review import Review
from natours.models.tour import tour_guide
from natours.models.user import User
from natours.services.auth import DUPLICATE_EMAIL
from natours.services.tours import get_tour_service

# Columns never exposed through list endpoints
HIDDEN_FIELDS = (
    "password_hash",
    "password_changed_at",
    "password_reset_token",
    "password_reset_expires_at",
    "login_attempts",
    "blocked",
    "block_expires_at",
    "active",
)


class UserService:
    """Handles user lookups and updates. Deactivated users are invisible everywhere."""

    def base_query(self, db: Session) -> Query:
        return db.query(User).filter(User.active.is_(True))

    def get_active_user(self, db: Session, user_id: int) -> User | None:
        return self.base_query(db).filter(User.id == user_id).first()

    def get_user(self, db: Session, user_id: int) -> User:
        user = self.get_active_user(db, user_id)
        if not user:
            raise NotFoundError("No user found with that ID")
        return user

    def update_user(self, db: Session, user: User, changes: dict[str, Any]) -> User:
        """Apply profile changes (name, email, photo, role)."""
        if "email" in changes and changes["email"] is not None:
            email = changes["email"].lower().strip()
            clash = db.query(User).filter(func.lower(User.email) == email, User.id != user.id).first()
            if clash:
                raise ConflictError(DUPLICATE_EMAIL)
            changes = {**changes, "email": email}
        if "role" in changes and changes["role"] is not None:
            changes = {**changes, "role": getattr(changes["role"], "value", changes["role"])}

        for field, value in changes.items():
            if value is not None:
                setattr(user, field, value)
        commit_or_conflict(db, DUPLICATE_EMAIL)
        db.refresh(user)
        return user

    def deactivate(self, db: Session, user: User) -> None:
        """Soft delete: the row stays but the account can no longer be used."""
        user.active = False
        db.commit()

    def delete_user(self, db: Session, user: User) -> None:
        """Hard delete a user, their reviews and guide assignments."""
        tour_ids = [row[0] for row in db.query(Review.tour_id).filter(Review.user_id == user.id).distinct()]
        db.query(Review).filter(Review.user_id == user.id).delete(synchronize_session=False)
        db.execute(tour_guide.delete().where(tour_guide.c.user_id == user.id))
        db.delete(user)
        db.commit()

        tour_service = get_tour_service()
        for tour_id in tour_ids:
            tour_service.recalculate_ratings(db, tour_id)


_user_service: UserService | None = None


def get_user_service() -> UserService:
    """Get singleton user service instance."""
    global _user_service
    if _user_service is None:
        _user_service = UserService()
    return _user_service
