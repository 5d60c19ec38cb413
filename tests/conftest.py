import os

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-that-is-long-enough-0123456789")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ENV", "test")

import itertools
from datetime import datetime, timedelta
from typing import List, Optional
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from audioly.core.errors import UploadError
from audioly.core.token import create_access_token
from audioly.infra.db import get_db
from audioly.infra.storage import StoredObject, get_storage
from audioly.main import create_app
from audioly.models import Base, Song, User
from audioly.social.directory import Directory
from audioly.social.store import PairLocks, RelationshipStore
from audioly.songs.catalog import ContentCatalog


class FakeStorage:
    """In-memory stand-in for the S3 bucket."""

    def __init__(self):
        self.objects = {}
        self.failing_folders = set()
        self._ids = itertools.count(1)

    async def upload(
        self,
        payload: bytes,
        folder: str,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> StoredObject:
        if folder in self.failing_folders:
            raise UploadError(details={"folder": folder})
        key = f"{folder}/{next(self._ids)}"
        self.objects[key] = payload
        return StoredObject(url=f"https://cdn.test/{key}", storage_id=key)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'audioly.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def pair_locks() -> PairLocks:
    return PairLocks()


@pytest.fixture
def store(db_session, pair_locks) -> RelationshipStore:
    return RelationshipStore(db_session, pair_locks, timeout=5.0)


@pytest.fixture
def catalog(db_session) -> ContentCatalog:
    return ContentCatalog(db_session, timeout=5.0)


@pytest.fixture
def directory(store, catalog) -> Directory:
    return Directory(store, catalog, limit=50)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_user(db_session):
    """Create users with strictly increasing created_at so ordering is stable."""
    counter = itertools.count()
    base_time = datetime(2026, 1, 1)

    async def _make(
        name: str,
        username: Optional[str] = None,
        is_private: bool = False,
    ) -> User:
        n = next(counter)
        user = User(
            id=str(uuid4()),
            email=f"user{n}-{uuid4().hex[:6]}@example.com",
            hashed_password="not-a-real-hash",
            name=name,
            username=(username or name).lower(),
            is_private=is_private,
            created_at=base_time + timedelta(minutes=n),
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


@pytest.fixture
def make_song(db_session):
    counter = itertools.count()
    base_time = datetime(2026, 2, 1)

    async def _make(owner: User, title: str, is_public: bool = True) -> Song:
        n = next(counter)
        song = Song(
            id=str(uuid4()),
            owner_id=owner.id,
            title=title,
            audio_url=f"https://cdn.test/audioly/audio/{n}",
            audio_storage_id=f"audioly/audio/{n}",
            is_public=is_public,
            play_count=0,
            created_at=base_time + timedelta(minutes=n),
        )
        db_session.add(song)
        await db_session.commit()
        return song

    return _make


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
async def client(session_factory, fake_storage):
    app = create_app()

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: fake_storage

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


def auth_headers(user_id: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': user_id})}"}


def ids(items: List) -> List[str]:
    return [item["id"] if isinstance(item, dict) else item.id for item in items]
