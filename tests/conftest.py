"""Pytest configuration and fixtures."""

import os

# Settings are read at import time, so the environment must be prepared first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["APP_ENV"] = "development"
os.environ["EMAIL_HOST"] = ""

from datetime import datetime  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from natours.database import Base, get_db  # noqa: E402
from natours.models.review import Review  # noqa: E402, F401
from natours.models.tour import Tour  # noqa: E402, F401
from natours.models.user import Role, User  # noqa: E402
from natours.services.auth import AuthService  # noqa: E402
from natours.services.jwt import get_jwt_service  # noqa: E402
from natours.services.tours import TourService  # noqa: E402

PASSWORD = "pass1234"


@pytest.fixture(name="db_session")
def db_session_fixture():
    """Create an in-memory SQLite database for tests."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    testing_session_local = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(name="client")
def client_fixture(db_session: Session):
    """Create a test client with overridden DB dependency and disabled rate limiting."""
    from main import app
    from natours.rate_limit import limiter

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    limiter.enabled = False
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c
    limiter.enabled = True
    app.dependency_overrides.clear()


@pytest.fixture(name="make_user")
def make_user_fixture(db_session: Session):
    """Factory creating users directly through the auth service."""

    def _make_user(name: str, email: str, role: Role = Role.USER, password: str = PASSWORD) -> User:
        return AuthService().create_user(db_session, name, email, password, role=role)

    return _make_user


@pytest.fixture(name="auth_headers")
def auth_headers_fixture():
    """Build an Authorization header for a user, optionally with a back-dated token."""

    def _auth_headers(user: User, issued_at: datetime | None = None) -> dict:
        token = get_jwt_service().create_token(user.id, issued_at=issued_at)
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers


@pytest.fixture(name="user")
def user_fixture(make_user) -> User:
    return make_user("Test User", "test@example.com")


@pytest.fixture(name="admin")
def admin_fixture(make_user) -> User:
    return make_user("Admin User", "admin@example.com", role=Role.ADMIN)


@pytest.fixture(name="lead_guide")
def lead_guide_fixture(make_user) -> User:
    return make_user("Lead Guide", "lead@example.com", role=Role.LEAD_GUIDE)


@pytest.fixture(name="guide")
def guide_fixture(make_user) -> User:
    return make_user("Tour Guide", "guide@example.com", role=Role.GUIDE)


@pytest.fixture(name="make_tour")
def make_tour_fixture(db_session: Session):
    """Factory creating tours with sensible defaults."""

    def _make_tour(name: str, **overrides) -> Tour:
        data = {
            "name": name,
            "duration": 5,
            "max_group_size": 25,
            "difficulty": "easy",
            "price": 397,
            "summary": "Breathtaking hike through the Canadian Banff National Park",
            "image_cover": "tour-1-cover.jpg",
            "start_dates": [datetime(2021, 4, 25, 9), datetime(2021, 7, 20, 9), datetime(2021, 10, 5, 9)],
        }
        data.update(overrides)
        return TourService().create_tour(db_session, data)

    return _make_tour


@pytest.fixture(name="tour")
def tour_fixture(make_tour) -> Tour:
    return make_tour("The Forest Hiker")
