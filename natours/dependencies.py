"""Authentication and authorization dependencies for FastAPI routes.

Routes compose these explicitly, e.g.::

    @router.post("/", dependencies=[Depends(require_roles(TOUR_MANAGERS))])
"""

from collections.abc import Callable
from datetime import timezone

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from natours.database import get_db
from natours.errors import AuthorizationError, MissingTokenError, PasswordChangedError, UserNoLongerExistsError
from natours.models.user import Role, User
from natours.services.jwt import get_jwt_service
from natours.services.users import get_user_service

ADMINS = frozenset({Role.ADMIN})
TOUR_MANAGERS = frozenset({Role.ADMIN, Role.LEAD_GUIDE})
TOUR_STAFF = frozenset({Role.ADMIN, Role.LEAD_GUIDE, Role.GUIDE})
REVIEWERS = frozenset({Role.USER})
REVIEW_EDITORS = frozenset({Role.USER, Role.ADMIN})


def get_bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


def password_changed_after(user: User, issued_at: int) -> bool:
    """True if the password was changed at or after the token's issue time (epoch seconds)."""
    if user.password_changed_at is None:
        return False
    changed_at = int(user.password_changed_at.replace(tzinfo=timezone.utc).timestamp())
    return changed_at >= issued_at


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """Resolve the user behind the Bearer token. Raises 401 at the first failing check."""
    token = get_bearer_token(request)
    if not token:
        raise MissingTokenError()

    claims = get_jwt_service().verify(token)

    user = get_user_service().get_active_user(db, claims.user_id)
    if not user:
        raise UserNoLongerExistsError()

    if password_changed_after(user, claims.issued_at):
        raise PasswordChangedError()

    request.state.user = user
    return user


def check_role(role: str, allowed: frozenset[Role]) -> None:
    """Raise AuthorizationError unless ``role`` is one of ``allowed``."""
    if role not in {r.value for r in allowed}:
        raise AuthorizationError()


def require_roles(allowed: frozenset[Role]) -> Callable[..., User]:
    """Build a dependency that authenticates the request and checks the user's role."""

    def role_guard(user: User = Depends(get_current_user)) -> User:
        check_role(user.role, allowed)
        return user

    return role_guard
