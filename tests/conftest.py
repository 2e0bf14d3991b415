"""Pytest configuration: in-memory SQLite, rate limiting off, token helpers.

Environment is set before any ``civictrack`` import because settings,
engine and limiter are created at import time.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["STRICT_STATUS_TRANSITIONS"] = "false"
os.environ.pop("SUPABASE_URL", None)
os.environ.pop("SUPABASE_SERVICE_ROLE", None)

import pytest
from fastapi.testclient import TestClient

import civictrack.models  # noqa: F401
from civictrack.core.security import hash_password, make_tokens
from civictrack.db.base import Base
from civictrack.db.session import SessionLocal, engine
from civictrack.main import app
from civictrack.models.user import User, UserRole
from civictrack.schemas.issue import IssueCreate
from civictrack.services import issues as issue_service

PASSWORD = "password123"
_password_hash = None


def _hashed_password() -> str:
    # bcrypt is slow; hash once per session
    global _password_hash
    if _password_hash is None:
        _password_hash = hash_password(PASSWORD)
    return _password_hash


@pytest.fixture(autouse=True)
def _schema():
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture
def db():
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


def make_user(db, name: str, email: str, role: UserRole = UserRole.user, banned: bool = False) -> User:
    user = User(name=name, email=email, hashed_password=_hashed_password(), role=role, is_banned=banned)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user: User) -> dict:
    token = make_tokens(user.email, user.role.value)["access_token"]
    return {"Authorization": f"Bearer {token}"}


def issue_payload(lat: float = 40.0, lng: float = -74.0, **overrides) -> dict:
    payload = {
        "title": "Pothole on Main Street",
        "description": "Large pothole next to the crosswalk, damaging tyres.",
        "category": "pothole",
        "location": {"lat": lat, "lng": lng, "address": "123 Main St"},
        "photos": [],
        "anonymous": False,
    }
    payload.update(overrides)
    return payload


def make_issue(db, author: User, lat: float = 40.0, lng: float = -74.0, **overrides):
    return issue_service.create_issue(db, author, IssueCreate(**issue_payload(lat, lng, **overrides)))


@pytest.fixture
def alice(db):
    return make_user(db, "Alice", "alice@example.com")


@pytest.fixture
def bob(db):
    return make_user(db, "Bob", "bob@example.com")


@pytest.fixture
def admin(db):
    return make_user(db, "Admin", "admin@example.com", role=UserRole.admin)
