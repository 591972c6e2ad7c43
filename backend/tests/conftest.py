"""Shared pytest fixtures: a throwaway SQLite catalog and blob directory per test."""
import asyncio
import io
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool
from starlette.datastructures import UploadFile

from toolvault.database import get_db, make_engine
from toolvault.main import app
from toolvault.models import Base, Tool
from toolvault.services.file_storage import FileStorageService, get_file_storage


@pytest.fixture
def session_factory(tmp_path: Path):
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'tools.db'}", poolclass=NullPool)

    async def create_tables():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(create_tables())
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    asyncio.run(engine.dispose())


@pytest.fixture
def storage(tmp_path: Path) -> FileStorageService:
    # Small chunks so multi-chunk paths run even for tiny payloads.
    return FileStorageService(base_path=tmp_path / "blobs", chunk_size=4)


@pytest.fixture
def run_db(session_factory):
    """Run ``fn(db)`` to completion in a fresh session and return its result."""
    def runner(fn):
        async def go():
            async with session_factory() as db:
                return await fn(db)
        return asyncio.run(go())
    return runner


@pytest.fixture
def count_rows(run_db):
    def counter() -> int:
        async def go(db):
            return (await db.execute(select(func.count(Tool.id)))).scalar_one()
        return run_db(go)
    return counter


@pytest.fixture
def client(session_factory, storage):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_file_storage] = lambda: storage
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_upload(data: bytes, filename: str = "tool.bin") -> UploadFile:
    return UploadFile(file=io.BytesIO(data), filename=filename)


def stored_blobs(storage: FileStorageService) -> list[str]:
    if not storage.base_path.exists():
        return []
    return sorted(p.name for p in storage.base_path.iterdir())
