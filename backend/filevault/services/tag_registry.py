"""Tag registry: atomic find-or-create of tags by name."""
import logging
from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from filevault.errors import PersistenceError
from filevault.models.tag import Tag

logger = logging.getLogger(__name__)

_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def normalize_tag_names(names: Iterable[str]) -> list[str]:
    """Trim, drop empties and dedupe, keeping first-seen order."""
    seen: dict[str, None] = {}
    for name in names:
        name = name.strip()
        if name:
            seen.setdefault(name, None)
    return list(seen)


def parse_tag_string(raw: str | None) -> list[str]:
    """Split a comma separated tag string, e.g. ``"beach, holiday,"``."""
    if not raw:
        return []
    return normalize_tag_names(raw.split(","))


class TagRegistry:
    """Maps tag names to stable ids, creating missing tags on the way."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def resolve(self, names: Iterable[str]) -> list[int]:
        """Return the ids of all distinct names, inserting any that are new.

        Uses INSERT ... ON CONFLICT DO NOTHING so two concurrent resolutions of
        the same new name converge on a single row.
        """
        distinct = normalize_tag_names(names)
        if not distinct:
            return []

        try:
            async with self._session_factory() as db:
                insert = _INSERTS.get(db.bind.dialect.name)
                if insert is None:
                    raise PersistenceError(
                        f"Tag upsert not supported for dialect {db.bind.dialect.name}"
                    )
                stmt = insert(Tag).values(
                    [{"name": name} for name in distinct]
                ).on_conflict_do_nothing(index_elements=["name"])
                await db.execute(stmt)
                result = await db.execute(
                    select(Tag.id).where(Tag.name.in_(distinct))
                )
                tag_ids = list(result.scalars().all())
                await db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Tag resolution failed: {e}")
            raise PersistenceError(f"Failed to resolve tags: {e}") from e

        return tag_ids

    async def list_all(self) -> list[Tag]:
        try:
            async with self._session_factory() as db:
                result = await db.execute(select(Tag).order_by(Tag.name))
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to list tags: {e}") from e
