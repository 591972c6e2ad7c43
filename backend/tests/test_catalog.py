"""Tests for the tool catalog."""
import asyncio

import pytest

from toolvault.services import catalog
from toolvault.services.errors import ConstraintViolationError, ToolNotFoundError


def _fields(**overrides):
    fields = {
        "name": "nmap-wrapper",
        "author": "a",
        "category": "recon",
        "description": None,
        "blob_key": "1-1.py",
        "original_name": "nmap-wrapper.py",
        "file_size": 10,
    }
    fields.update(overrides)
    return fields


def _insert(run_db, **overrides):
    return run_db(lambda db: catalog.insert_tool(db, **_fields(**overrides)))


def test_insert_assigns_server_fields(run_db):
    tool = _insert(run_db)

    assert tool.id == 1
    assert tool.download_count == 0
    assert tool.upload_date is not None
    assert tool.file_size == 10


@pytest.mark.parametrize("field", ["name", "author", "category"])
def test_insert_rejects_blank_required_fields(run_db, count_rows, field):
    with pytest.raises(ConstraintViolationError):
        _insert(run_db, **{field: "  "})
    assert count_rows() == 0


def test_insert_rejects_duplicate_blob_key(run_db, count_rows):
    _insert(run_db, blob_key="same")
    with pytest.raises(ConstraintViolationError):
        _insert(run_db, blob_key="same")
    assert count_rows() == 1


def test_list_is_newest_first_and_category_is_an_ordered_subset(run_db):
    categories = ["recon", "exploit", "recon", "Recon", "post", "recon"]
    for i, category in enumerate(categories):
        _insert(run_db, blob_key=f"k{i}", category=category)

    everything = run_db(catalog.list_tools)
    recon = run_db(lambda db: catalog.list_tools(db, category="recon"))

    assert [t.id for t in everything] == [6, 5, 4, 3, 2, 1]
    assert [t.id for t in recon] == [t.id for t in everything if t.category == "recon"]
    assert [t.id for t in recon] == [6, 3, 1]


def test_list_unknown_category_is_empty(run_db):
    _insert(run_db)
    assert run_db(lambda db: catalog.list_tools(db, category="rec")) == []


def test_get_missing_tool(run_db):
    with pytest.raises(ToolNotFoundError):
        run_db(lambda db: catalog.get_tool(db, 999))


def test_increment_download_count(run_db):
    tool = _insert(run_db)

    run_db(lambda db: catalog.increment_download_count(db, tool.id))
    run_db(lambda db: catalog.increment_download_count(db, tool.id))

    assert run_db(lambda db: catalog.get_tool(db, tool.id)).download_count == 2


def test_increment_missing_tool(run_db):
    with pytest.raises(ToolNotFoundError):
        run_db(lambda db: catalog.increment_download_count(db, 42))


def test_concurrent_increments_are_not_lost(run_db, session_factory):
    tool = _insert(run_db)
    n = 25

    async def bump():
        async with session_factory() as db:
            await catalog.increment_download_count(db, tool.id)

    async def bump_all():
        await asyncio.gather(*(bump() for _ in range(n)))

    asyncio.run(bump_all())

    assert run_db(lambda db: catalog.get_tool(db, tool.id)).download_count == n


def test_stats_on_empty_catalog(run_db):
    assert run_db(catalog.aggregate_stats) == {"total_tools": 0, "total_downloads": 0}


def test_stats_sum_downloads(run_db):
    first = _insert(run_db, blob_key="k1")
    second = _insert(run_db, blob_key="k2")
    _insert(run_db, blob_key="k3")
    for tool_id in (first.id, first.id, second.id):
        run_db(lambda db, tool_id=tool_id: catalog.increment_download_count(db, tool_id))

    assert run_db(catalog.aggregate_stats) == {"total_tools": 3, "total_downloads": 3}
