"""Durable store for file records and their tag associations."""
import logging
from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy import desc, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from filevault.errors import PersistenceError
from filevault.models.file_record import FileRecord
from filevault.models.tag import Tag

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileRecordDraft:
    """Fields of a file record known before it is persisted."""

    original_name: str
    stored_name: str
    mime_type: str
    size_bytes: int
    storage_path: str
    iv: str


def _like_pattern(query: str) -> str:
    escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class MetadataRepository:
    """SQLAlchemy-backed repository. Each call uses its own session."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create(self, draft: FileRecordDraft, tag_ids: Iterable[int]) -> FileRecord:
        """Insert the record and its tag links in a single transaction."""
        tag_ids = set(tag_ids)
        try:
            async with self._session_factory() as db:
                async with db.begin():
                    tags = []
                    if tag_ids:
                        result = await db.execute(select(Tag).where(Tag.id.in_(tag_ids)))
                        tags = list(result.scalars().all())
                        if len(tags) != len(tag_ids):
                            missing = tag_ids - {t.id for t in tags}
                            raise PersistenceError(f"Unknown tag ids: {sorted(missing)}")
                    record = FileRecord(
                        original_name=draft.original_name,
                        stored_name=draft.stored_name,
                        mime_type=draft.mime_type,
                        size_bytes=draft.size_bytes,
                        storage_path=draft.storage_path,
                        iv=draft.iv,
                        tags=tags,
                    )
                    db.add(record)

                # Reload so server defaults (created_at) are populated.
                result = await db.execute(
                    select(FileRecord)
                    .where(FileRecord.id == record.id)
                    .execution_options(populate_existing=True)
                )
                return result.scalar_one()
        except SQLAlchemyError as e:
            logger.error(f"Failed to persist file record {draft.stored_name}: {e}")
            raise PersistenceError(f"Failed to persist file record: {e}") from e

    async def list_all(self) -> list[FileRecord]:
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(FileRecord).order_by(desc(FileRecord.created_at))
                )
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to list file records: {e}") from e

    async def find_by_stored_name(self, stored_name: str) -> FileRecord | None:
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(FileRecord).where(FileRecord.stored_name == stored_name)
                )
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to look up {stored_name}: {e}") from e

    async def search(self, query: str | None) -> list[FileRecord]:
        """Case-insensitive substring match on original name or any tag name.

        An empty query matches nothing rather than everything.
        """
        if not query or not query.strip():
            return []
        pattern = _like_pattern(query.strip())
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(FileRecord)
                    .where(
                        or_(
                            FileRecord.original_name.ilike(pattern, escape="\\"),
                            FileRecord.tags.any(Tag.name.ilike(pattern, escape="\\")),
                        )
                    )
                    .order_by(desc(FileRecord.created_at))
                )
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise PersistenceError(f"Search failed: {e}") from e

    async def list_storage_paths(self) -> set[str]:
        try:
            async with self._session_factory() as db:
                result = await db.execute(select(FileRecord.storage_path))
                return set(result.scalars().all())
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to list storage paths: {e}") from e
