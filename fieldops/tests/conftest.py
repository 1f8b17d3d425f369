"""
Pytest configuration and fixtures
"""
import os

# Settings are read at import time; tests never need a real secret or database file
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-field-operations")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("APP_ENV", "local")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.engine import Engine

from fieldops.main import app
from fieldops.db.base import Base
from fieldops.core.deps import get_db
from fieldops.core.security import create_access_token
from fieldops.services.workflow_registry import registry

# Import all models to ensure they're registered with Base.metadata
from fieldops.models import Guard, GuardStatus, Post, Weapon  # noqa


# Use in-memory SQLite for testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# Enable foreign keys for SQLite
@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Palacio de los López, Asunción
POST_LAT = -25.2637
POST_LNG = -57.5759


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test"""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db):
    """Test client fixture with database override and an empty workflow registry"""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    registry.clear()
    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
    registry.clear()


@pytest.fixture
def test_post(db):
    """A post with coordinates"""
    post = Post(name="Palacio", address="El Paraguayo Independiente", latitude=POST_LAT, longitude=POST_LNG)
    db.add(post)
    db.commit()
    db.refresh(post)
    return post


@pytest.fixture
def test_guard(db, test_post):
    """An active guard assigned to test_post"""
    guard = Guard(
        user_id="user-guard-1",
        ci="4123456",
        first_name="Juan",
        last_name="Benítez",
        status=GuardStatus.ACTIVE.value,
        current_post_id=test_post.id,
    )
    db.add(guard)
    db.commit()
    db.refresh(guard)
    return guard


@pytest.fixture
def test_weapon(db, test_guard):
    """A pistol with 10 rounds assigned to test_guard"""
    weapon = Weapon(
        serial_number="TAU-000123",
        type="PISTOL",
        caliber="9mm",
        brand="Taurus",
        model="G2C",
        ammo_count=10,
        version=1,
        assigned_guard_id=test_guard.id,
    )
    db.add(weapon)
    db.commit()
    db.refresh(weapon)
    return weapon


@pytest.fixture
def auth_headers():
    """Build a Bearer header with a token as the authentication service would issue it"""
    def _make(user_id: str, role: str = "GUARD", **claims) -> dict:
        token = create_access_token({"sub": user_id, "role": role, **claims})
        return {"Authorization": f"Bearer {token}"}
    return _make
