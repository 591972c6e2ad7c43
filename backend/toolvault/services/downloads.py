"""Retrieval of stored tools with download accounting."""
import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from toolvault.models.tool import Tool
from toolvault.services import catalog
from toolvault.services.errors import BlobMissingError, BlobNotFoundError
from toolvault.services.file_storage import BlobStream, FileStorageService

logger = logging.getLogger(__name__)


@dataclass
class ToolDownload:
    tool: Tool
    stream: BlobStream

    @property
    def filename(self) -> str:
        return self.tool.original_name

    @property
    def size(self) -> int:
        return self.stream.size


async def open_download(db: AsyncSession, storage: FileStorageService, tool_id: int) -> ToolDownload:
    """Resolve a tool, count the download and hand back its byte stream.

    The count is committed before any byte is sent and is not rolled back if
    the transfer to the client is interrupted afterwards.
    """
    tool = await catalog.get_tool(db, tool_id)

    if not await storage.exists(tool.blob_key):
        logger.error(f"Tool {tool.id} references missing blob {tool.blob_key}")
        raise BlobMissingError(tool.id, tool.blob_key)

    await catalog.increment_download_count(db, tool.id)

    try:
        stream = await storage.open(tool.blob_key)
    except BlobNotFoundError as e:
        logger.error(f"Blob {tool.blob_key} for tool {tool.id} vanished after the existence check")
        raise BlobMissingError(tool.id, tool.blob_key) from e

    return ToolDownload(tool=tool, stream=stream)
