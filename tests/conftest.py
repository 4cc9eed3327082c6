import os
import tempfile

_TMP = tempfile.mkdtemp(prefix="singlebrief-tests-")
os.environ["SECRET"] = "test-secret-not-for-production"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TMP, 'test.db')}"
os.environ["EMAIL_TRANSPORT"] = "dummy"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["AVATAR_DIR"] = os.path.join(_TMP, "avatars")
os.environ["BASE_URL"] = "http://testserver"

import httpx
import pytest
from fastapi import Depends
from fastapi_users.password import PasswordHelper
from sqlalchemy import event

from singlebrief.background import drain
from singlebrief.database import Base, async_session_maker, engine, get_db
from singlebrief.main import app
from singlebrief.models import User
from singlebrief.services.profiles import ensure_profile
from singlebrief.utils import require_authenticated_user

PASSWORD = "secret123"


@event.listens_for(engine.sync_engine, "connect")
def _sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest.fixture(autouse=True)
async def schema():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await drain(timeout=5)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def db():
    async with async_session_maker() as session:
        yield session


@pytest.fixture
def make_user(db):
    helper = PasswordHelper()

    async def _make(email: str = "owner@example.com", name: str | None = "Olivia Owner") -> User:
        user = User(email=email, hashed_password=helper.hash(PASSWORD), is_active=True)
        db.add(user)
        await db.flush()
        await ensure_profile(db, user, name=name)
        await db.commit()
        return user

    return _make


@pytest.fixture
async def user(make_user):
    return await make_user()


@pytest.fixture
def client_for():
    """Build an API client authenticated as the given user."""

    def _client(user: User | None) -> httpx.AsyncClient:
        if user is not None:
            user_id = user.id

            async def _current(session=Depends(get_db)):
                return await session.get(User, user_id)

            app.dependency_overrides[require_authenticated_user] = _current
        return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")

    yield _client
    app.dependency_overrides.clear()


@pytest.fixture
async def client(client_for, user):
    async with client_for(user) as c:
        yield c


@pytest.fixture
async def anon_client(client_for):
    async with client_for(None) as c:
        yield c
