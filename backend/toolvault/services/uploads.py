"""Upload coordinator.

An upload touches two stores with no shared transaction: the blob is written
first, then the catalog row. If the row cannot be created the blob is deleted
again, so a failed upload never leaves a usable tool behind.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from toolvault.config import settings
from toolvault.models.tool import Tool
from toolvault.services import catalog
from toolvault.services.errors import (
    BlobTooLargeError,
    InvalidUploadError,
    PayloadTooLargeError,
    UploadFailedError,
)
from toolvault.services.file_storage import FileStorageService

logger = logging.getLogger(__name__)


def validate_upload(file, name, author, category) -> None:
    """Reject the request before anything is stored."""
    if file is None or not getattr(file, "filename", None):
        raise InvalidUploadError("No file uploaded")
    missing = [
        field for field, value in (("name", name), ("author", author), ("category", category))
        if catalog.is_blank(value)
    ]
    if missing:
        raise InvalidUploadError(f"Missing required field(s): {', '.join(missing)}")


async def upload_tool(
    db: AsyncSession,
    storage: FileStorageService,
    file,
    *,
    name: str | None,
    author: str | None,
    category: str | None,
    description: str | None = None,
    size_limit: int | None = None,
) -> Tool:
    """Store an uploaded file and create its catalog entry."""
    validate_upload(file, name, author, category)
    limit = settings.MAX_UPLOAD_BYTES if size_limit is None else size_limit

    try:
        blob_key, file_size = await storage.put(file, file.filename, limit)
    except BlobTooLargeError as e:
        logger.info(f"Rejected upload {file.filename!r}: larger than {limit} bytes")
        raise PayloadTooLargeError(limit) from e

    try:
        tool = await catalog.insert_tool(
            db,
            name=name,
            author=author,
            category=category,
            description=description,
            blob_key=blob_key,
            original_name=file.filename,
            file_size=file_size,
        )
    except Exception as e:
        logger.warning(f"Catalog insert failed for blob {blob_key}, discarding it: {e}")
        if not await storage.delete(blob_key):
            logger.error(f"Blob {blob_key} could not be removed and is now orphaned")
        raise UploadFailedError(f"Upload failed: {e}") from e

    logger.info(f"Uploaded tool {tool.id} ({tool.name!r}, {file_size} bytes, blob {blob_key})")
    return tool
