import pytest
from fastapi.testclient import TestClient
from sqlalchemy import StaticPool, create_engine
from sqlalchemy.dialects.sqlite import base as sqlite_base
from sqlalchemy.orm import sessionmaker

import app.models  # noqa: F401 — register models with Base.metadata
from app.core.config import settings
from app.core.database import Base, get_db
from app.main import app as fastapi_app
from app.models import User
from app.services.auth import create_access_token, hash_password

settings.DEBUG = True

# ---------------------------------------------------------------------------
# SQLite compatibility for PostgreSQL-specific types (JSONB, UUID)
# ---------------------------------------------------------------------------
sqlite_base.SQLiteTypeCompiler.visit_JSONB = lambda self, type_, **kw: self.visit_JSON(type_, **kw)

# In-memory SQLite for tests — no PostgreSQL dependency needed
TEST_DATABASE_URL = "sqlite://"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def setup_db():
    """Create all tables before each test, drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    """Provide a test database session."""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def user(db):
    """Form owner used by the authenticated tests."""
    owner = User(
        email="owner@example.com",
        name="Form Owner",
        password_hash=hash_password("strongpassword123"),
    )
    db.add(owner)
    db.commit()
    db.refresh(owner)
    return owner


@pytest.fixture
def other_user(db):
    stranger = User(
        email="stranger@example.com",
        name="Someone Else",
        password_hash=hash_password("strongpassword123"),
    )
    db.add(stranger)
    db.commit()
    db.refresh(stranger)
    return stranger


@pytest.fixture
def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def client(db):
    """TestClient with overridden DB dependency."""

    def _override_get_db():
        try:
            yield db
        finally:
            pass

    fastapi_app.dependency_overrides[get_db] = _override_get_db
    yield TestClient(fastapi_app)
    fastapi_app.dependency_overrides.clear()
