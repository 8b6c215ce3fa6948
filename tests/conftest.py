"""Shared fixtures: a SQLite-backed storage engine under tmp_path."""
import pytest
import pytest_asyncio

from filevault.database import build_engine, build_session_factory
from filevault.models import Base
from filevault.services.cipher import CipherUnit, KeyMaterial
from filevault.services.file_storage import LocalBlobStore
from filevault.services.metadata_repository import MetadataRepository
from filevault.services.storage_orchestrator import StorageOrchestrator
from filevault.services.tag_registry import TagRegistry


@pytest.fixture
def key_material():
    return KeyMaterial.generate()


@pytest.fixture
def cipher(key_material):
    return CipherUnit(key_material)


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'vault.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield build_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def blob_store(tmp_path):
    return LocalBlobStore(tmp_path / "uploads")


@pytest.fixture
def tag_registry(session_factory):
    return TagRegistry(session_factory)


@pytest.fixture
def repository(session_factory):
    return MetadataRepository(session_factory)


@pytest.fixture
def orchestrator(cipher, blob_store, tag_registry, repository):
    return StorageOrchestrator(cipher, blob_store, tag_registry, repository)
