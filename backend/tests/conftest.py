"""
Shared fixtures for the SafetyMapper API tests.

Each test gets its own SQLite database file and upload directory. The app's
``get_db`` dependency is overridden to use that database, and accounts are
created directly through the ORM with tokens minted by ``app.auth.jwt``.
"""

import asyncio
import os
import tempfile
from datetime import datetime
from pathlib import Path

# Settings are read once at import time, so the environment must be ready first
_BOOTSTRAP_DIR = Path(tempfile.mkdtemp(prefix="safetymapper-tests-"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_BOOTSTRAP_DIR / 'bootstrap.db'}"
os.environ["APP_ENV"] = "test"
os.environ["DEBUG"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["ADMIN_API_KEY"] = "test-admin-key"
os.environ["UPLOAD_DIR"] = str(_BOOTSTRAP_DIR / "uploads")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.auth.jwt import create_access_token
from app.auth.password import hash_password
from app.config import get_settings
from app.database import Base, get_db
from app.main import app
from app.models import Event, Mapper, User

ADMIN_API_KEY = "test-admin-key"
PASSWORD = "secret123"

VI = (6.4281, 3.4219)  # Victoria Island
IKEJA = (6.6018, 3.3515)
ABUJA = (9.0765, 7.3986)


def run(coro):
    """Run a coroutine from a synchronous test."""
    return asyncio.run(coro)


@pytest.fixture
def upload_dir(tmp_path, monkeypatch):
    """Point media storage at a fresh directory."""
    path = tmp_path / "uploads"
    monkeypatch.setattr(get_settings(), "upload_dir", str(path))
    return path


@pytest.fixture
def session_maker(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)

    async def create_tables():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    run(create_tables())
    yield async_sessionmaker(engine, expire_on_commit=False)
    run(engine.dispose())


@pytest.fixture
def client(session_maker, upload_dir):
    """TestClient bound to the per-test database."""

    async def override_get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def db(session_maker):
    """
    Run a coroutine function against a fresh session and commit.

    Usage: ``db(lambda session: session.get(Mapper, mapper_id))``
    """

    def _run(fn):
        async def _inner():
            async with session_maker() as session:
                result = await fn(session)
                await session.commit()
                return result

        return run(_inner())

    return _run


# ============================================================================
# Accounts
# ============================================================================

@pytest.fixture
def make_user(db):
    """Factory for users-table accounts (role "user" or "admin")."""

    def _make(email: str = "ada@example.com", role: str = "user", **fields) -> User:
        user = User(
            name=fields.pop("name", "Ada Obi"),
            email=email,
            password_hash=hash_password(PASSWORD),
            role=role,
            **fields,
        )

        async def _add(session):
            session.add(user)
            await session.flush()
            return user

        return db(_add)

    return _make


@pytest.fixture
def make_mapper(db):
    """Factory for mapper accounts."""

    def _make(email: str = "tunde@example.com", **fields) -> Mapper:
        values = {
            "name": "Tunde Bakare",
            "phone": "+2348030000001",
            "vehicle_type": "DANFO_BUS",
            "agreed_to_terms": True,
        }
        values.update(fields)
        mapper = Mapper(email=email, password_hash=hash_password(PASSWORD), **values)

        async def _add(session):
            session.add(mapper)
            await session.flush()
            return mapper

        return db(_add)

    return _make


@pytest.fixture
def make_event(db):
    """Factory for events inserted straight into the database."""

    def _make(reporter, lat: float = VI[0], lon: float = VI[1], **fields) -> Event:
        values = {
            "category": "TRAFFIC",
            "title": "Gridlock",
            "description": "Cars at a standstill",
            "severity": "MEDIUM",
            "status": "ACTIVE",
            "media": [],
            "reporter_id": reporter.id,
            "reporter_name": reporter.name,
            "reporter_role": "mapper" if isinstance(reporter, Mapper) else reporter.role,
            "created_at": datetime.utcnow(),
        }
        values.update(fields)
        event = Event(lat=lat, lon=lon, **values)

        async def _add(session):
            session.add(event)
            await session.flush()
            return event

        return db(_add)

    return _make


def auth_headers(account) -> dict:
    """Bearer header for a User or Mapper row."""
    if isinstance(account, Mapper):
        role = "mapper"
    else:
        role = account.role
    token = create_access_token(account.id, account.email, role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(email="admin@example.com", role="admin", name="Admin")


@pytest.fixture
def mapper(make_mapper):
    return make_mapper()


def rows(db, model) -> list:
    """Every row of a model, read through the ``db`` fixture."""

    async def _select(session):
        result = await session.execute(select(model))
        return list(result.scalars().all())

    return db(_select)
