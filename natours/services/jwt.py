"""JWT Token Service."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt

from natours.config import get_settings
from natours.errors import InvalidTokenError


@dataclass(frozen=True)
class TokenClaims:
    """Identity carried by a verified session token."""

    user_id: int
    issued_at: int  # epoch seconds


class JWTService:
    """Handles JWT token creation and validation."""

    def __init__(self) -> None:
        settings = get_settings()
        self.secret_key = settings.JWT_SECRET_KEY
        self.algorithm = settings.JWT_ALGORITHM
        self.expire_minutes = settings.JWT_EXPIRE_MINUTES

    def create_token(self, user_id: int, issued_at: datetime | None = None) -> str:
        """Create a signed token for the given user."""
        issued_at = issued_at or datetime.now(timezone.utc)
        payload = {
            "sub": str(user_id),
            "iat": issued_at,
            "exp": issued_at + timedelta(minutes=self.expire_minutes),
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify(self, token: str) -> TokenClaims:
        """Decode and validate a token. Raises InvalidTokenError if it is bad or expired."""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            raise InvalidTokenError("Your token has expired. Please log in again!") from None
        except JWTError:
            raise InvalidTokenError() from None

        try:
            return TokenClaims(user_id=int(payload["sub"]), issued_at=int(payload["iat"]))
        except (KeyError, TypeError, ValueError):
            raise InvalidTokenError() from None


_jwt_service: JWTService | None = None


def get_jwt_service() -> JWTService:
    """Get singleton JWT service instance."""
    global _jwt_service
    if _jwt_service is None:
        _jwt_service = JWTService()
    return _jwt_service
