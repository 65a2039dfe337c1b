"""Tests for the forgot-password / reset-password flow."""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from natours.database import utcnow
from natours.errors import EmailDeliveryError, InvalidResetTokenError
from natours.models.user import User
from natours.services.auth import AuthService, hash_reset_token
from natours.services.email import EmailService

NEW_PASSWORD = {"password": "brandnew1", "passwordConfirm": "brandnew1"}


def _request_reset(client: TestClient, email: str = "test@example.com") -> str:
    """Trigger forgot-password and return the plaintext token from the emailed URL."""
    with patch.object(EmailService, "send_password_reset") as mock_send:
        response = client.post("/users/forgot-password", json={"email": email})
    assert response.status_code == 200
    reset_url = mock_send.call_args.args[2]
    return reset_url.rsplit("/", 1)[-1]


class TestForgotPassword:
    """Tests for requesting a reset token."""

    def test_stores_hashed_token(self, client: TestClient, db_session: Session, user: User):
        with patch.object(EmailService, "send_password_reset") as mock_send:
            response = client.post("/users/forgot-password", json={"email": "test@example.com"})

        assert response.status_code == 200
        assert response.json() == {"status": "success", "message": "Token sent to email!"}

        to_email, name, reset_url, minutes = mock_send.call_args.args
        assert to_email == "test@example.com"
        assert name == "Test User"
        assert minutes == 10
        assert "/users/reset-password/" in reset_url

        token = reset_url.rsplit("/", 1)[-1]
        assert len(token) == 64
        db_session.refresh(user)
        assert user.password_reset_token == hash_reset_token(token)
        assert user.password_reset_token != token
        assert user.password_reset_expires_at > utcnow() + timedelta(minutes=9)

    def test_unknown_email(self, client: TestClient):
        with patch.object(EmailService, "send_password_reset") as mock_send:
            response = client.post("/users/forgot-password", json={"email": "nobody@example.com"})
        assert response.status_code == 404
        assert response.json()["message"] == "There is no user with that email address."
        mock_send.assert_not_called()

    def test_delivery_failure_clears_token(self, client: TestClient, db_session: Session, user: User):
        with patch.object(EmailService, "send_password_reset", side_effect=EmailDeliveryError()):
            response = client.post("/users/forgot-password", json={"email": "test@example.com"})

        assert response.status_code == 500
        assert response.json()["message"] == "There was an error sending the email. Try again later!"
        db_session.refresh(user)
        assert user.password_reset_token is None
        assert user.password_reset_expires_at is None

    def test_logs_email_without_smtp_host(self, client: TestClient, user: User, caplog):
        """With no SMTP host configured the message goes to the log."""
        with caplog.at_level("INFO", logger="natours"):
            response = client.post("/users/forgot-password", json={"email": "test@example.com"})
        assert response.status_code == 200
        assert "/users/reset-password/" in caplog.text


class TestResetPassword:
    """Tests for consuming a reset token."""

    def test_reset_success(self, client: TestClient, db_session: Session, user: User):
        token = _request_reset(client)

        response = client.patch(f"/users/reset-password/{token}", json=NEW_PASSWORD)
        assert response.status_code == 200
        assert response.json()["token"]

        db_session.refresh(user)
        assert user.password_reset_token is None
        assert user.password_reset_expires_at is None
        assert user.password_changed_at is not None

        login = client.post("/users/login", json={"email": "test@example.com", "password": "brandnew1"})
        assert login.status_code == 200

    def test_token_is_single_use(self, client: TestClient, user: User):
        token = _request_reset(client)
        assert client.patch(f"/users/reset-password/{token}", json=NEW_PASSWORD).status_code == 200

        again = client.patch(f"/users/reset-password/{token}", json=NEW_PASSWORD)
        assert again.status_code == 400
        assert again.json()["message"] == "Token is invalid or has expired"

    def test_invalid_token(self, client: TestClient, user: User):
        response = client.patch("/users/reset-password/not-a-real-token", json=NEW_PASSWORD)
        assert response.status_code == 400
        assert response.json()["message"] == "Token is invalid or has expired"

    def test_expired_token(self, db_session: Session, user: User):
        service = AuthService()
        now = utcnow()
        user.password_reset_token = hash_reset_token("abc123")
        user.password_reset_expires_at = now + timedelta(minutes=10)
        db_session.commit()

        with pytest.raises(InvalidResetTokenError):
            service.reset_password(db_session, "abc123", "brandnew1", now=now + timedelta(minutes=11))

    def test_password_mismatch(self, client: TestClient, user: User):
        token = _request_reset(client)
        response = client.patch(
            f"/users/reset-password/{token}", json={"password": "brandnew1", "passwordConfirm": "brandnew2"}
        )
        assert response.status_code == 400

    def test_reset_invalidates_older_tokens(self, client: TestClient, user: User, auth_headers):
        old_headers = auth_headers(user, issued_at=datetime.now(timezone.utc) - timedelta(minutes=5))
        token = _request_reset(client)
        assert client.patch(f"/users/reset-password/{token}", json=NEW_PASSWORD).status_code == 200

        response = client.get("/users/get-me", headers=old_headers)
        assert response.status_code == 401
        assert response.json()["message"] == "User recently changed password! Please log in again."
