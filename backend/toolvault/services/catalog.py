"""Catalog of uploaded tools.

Every function takes the caller's AsyncSession. Writes commit before returning
so that a row is visible to other sessions as soon as the call completes.
"""
import logging

from sqlalchemy import select, update, desc, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from toolvault.models.tool import Tool
from toolvault.services.errors import CatalogStorageError, ConstraintViolationError, ToolNotFoundError

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("name", "author", "category")


def is_blank(value) -> bool:
    return value is None or not str(value).strip()


async def insert_tool(
    db: AsyncSession,
    *,
    name: str,
    author: str,
    category: str,
    description: str | None,
    blob_key: str,
    original_name: str,
    file_size: int,
) -> Tool:
    """Insert a catalog row. id, upload_date and download_count come from the database."""
    fields = {"name": name, "author": author, "category": category,
              "blob_key": blob_key, "original_name": original_name}
    missing = [k for k, v in fields.items() if is_blank(v)]
    if missing:
        raise ConstraintViolationError(f"Missing required field(s): {', '.join(missing)}")
    if file_size is None or file_size < 0:
        raise ConstraintViolationError(f"Invalid file size: {file_size}")

    tool = Tool(
        name=name,
        author=author,
        category=category,
        description=description,
        blob_key=blob_key,
        original_name=original_name,
        file_size=file_size,
    )
    try:
        db.add(tool)
        await db.commit()
        await db.refresh(tool)
    except IntegrityError as e:
        await db.rollback()
        raise ConstraintViolationError(str(e.orig)) from e
    except SQLAlchemyError as e:
        await db.rollback()
        raise CatalogStorageError(str(e)) from e
    return tool


async def list_tools(db: AsyncSession, category: str | None = None) -> list[Tool]:
    """List tools newest first, optionally restricted to one exact category."""
    query = select(Tool).order_by(desc(Tool.upload_date), desc(Tool.id))
    if category is not None:
        query = query.where(Tool.category == category)
    try:
        result = await db.execute(query)
    except SQLAlchemyError as e:
        raise CatalogStorageError(str(e)) from e
    return list(result.scalars().all())


async def get_tool(db: AsyncSession, tool_id: int) -> Tool:
    try:
        tool = await db.get(Tool, tool_id)
    except SQLAlchemyError as e:
        raise CatalogStorageError(str(e)) from e
    if not tool:
        raise ToolNotFoundError(tool_id)
    return tool


async def increment_download_count(db: AsyncSession, tool_id: int) -> None:
    """Add one to a tool's download count.

    The addition is evaluated by the database in a single UPDATE, so concurrent
    downloads of the same tool never lose an increment.
    """
    try:
        result = await db.execute(
            update(Tool)
            .where(Tool.id == tool_id)
            .values(download_count=Tool.download_count + 1)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise CatalogStorageError(str(e)) from e
    if result.rowcount == 0:
        raise ToolNotFoundError(tool_id)


async def aggregate_stats(db: AsyncSession) -> dict:
    """Total number of tools and total downloads across the catalog."""
    try:
        result = await db.execute(
            select(
                func.count(Tool.id),
                func.coalesce(func.sum(Tool.download_count), 0),
            )
        )
    except SQLAlchemyError as e:
        raise CatalogStorageError(str(e)) from e
    total_tools, total_downloads = result.one()
    return {"total_tools": int(total_tools), "total_downloads": int(total_downloads)}
