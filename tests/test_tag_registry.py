import asyncio

import pytest
from sqlalchemy import func, select

from filevault.models.tag import Tag
from filevault.services.tag_registry import parse_tag_string


def test_parse_tag_string():
    assert parse_tag_string(" beach, holiday ,,beach,") == ["beach", "holiday"]
    assert parse_tag_string("") == []
    assert parse_tag_string(None) == []


@pytest.mark.asyncio
async def test_resolve_creates_and_reuses(tag_registry):
    first = await tag_registry.resolve(["photo", "work"])
    second = await tag_registry.resolve(["work", "photo", " photo "])
    assert len(first) == 2
    assert sorted(first) == sorted(second)


@pytest.mark.asyncio
async def test_resolve_empty(tag_registry):
    assert await tag_registry.resolve([]) == []
    assert await tag_registry.resolve(["", "  "]) == []


@pytest.mark.asyncio
async def test_resolve_is_case_sensitive(tag_registry):
    ids = await tag_registry.resolve(["Photo", "photo"])
    assert len(set(ids)) == 2


@pytest.mark.asyncio
async def test_concurrent_resolution_converges(tag_registry, session_factory):
    results = await asyncio.gather(
        tag_registry.resolve(["photo", "photo"]),
        tag_registry.resolve(["photo", "photo"]),
    )
    assert results[0] == results[1]

    async with session_factory() as db:
        count = await db.scalar(select(func.count()).select_from(Tag).where(Tag.name == "photo"))
    assert count == 1


@pytest.mark.asyncio
async def test_list_all_sorted(tag_registry):
    await tag_registry.resolve(["zeta", "alpha"])
    tags = await tag_registry.list_all()
    assert [t.name for t in tags] == ["alpha", "zeta"]
