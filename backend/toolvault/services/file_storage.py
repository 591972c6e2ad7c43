"""Blob storage on the local filesystem.

Blobs are write-once files in a single directory, addressed by generated keys.
The store never looks at the contents; the catalog decides what a blob means.
"""
import asyncio
import logging
import os
import re
import secrets
import time
from pathlib import Path

import aiofiles
import aiofiles.os

from toolvault.config import settings
from toolvault.services.errors import BlobNotFoundError, BlobStorageError, BlobTooLargeError

logger = logging.getLogger(__name__)

_EXTENSION_RE = re.compile(r"^\.[A-Za-z0-9]{1,16}$")
_KEY_ATTEMPTS = 3


def generate_blob_key(original_name: str) -> str:
    """Build a key from a nanosecond timestamp, a random number and the source extension.

    Only a short alphanumeric extension survives from ``original_name``; the
    base name never ends up in the key.
    """
    ext = Path(original_name.replace("\\", "/")).suffix
    if not _EXTENSION_RE.match(ext):
        ext = ""
    return f"{time.time_ns()}-{secrets.randbelow(1_000_000_000)}{ext}"


class BlobStream:
    """Readable view of a stored blob. The file is opened on first iteration."""

    def __init__(self, path: Path, size: int, chunk_size: int):
        self.path = path
        self.size = size
        self.chunk_size = chunk_size

    async def __aiter__(self):
        async with aiofiles.open(self.path, "rb") as f:
            while chunk := await f.read(self.chunk_size):
                yield chunk

    async def read(self) -> bytes:
        """Read the whole blob into memory."""
        return b"".join([chunk async for chunk in self])


class FileStorageService:
    """Handles blob write/read/delete under a base directory."""

    def __init__(self, base_path: str | Path | None = None, chunk_size: int | None = None):
        if settings.FILE_STORAGE_TYPE != "local":
            raise ValueError(f"Unknown storage type: {settings.FILE_STORAGE_TYPE}")
        self.base_path = Path(base_path or settings.FILE_STORAGE_PATH)
        self.chunk_size = chunk_size or settings.UPLOAD_CHUNK_SIZE

    def ensure_ready(self) -> None:
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _path_for(self, blob_key: str) -> Path | None:
        if not blob_key or blob_key in (".", "..") or Path(blob_key).name != blob_key or "\\" in blob_key:
            return None
        return self.base_path / blob_key

    async def _create(self, original_name: str):
        """Open a fresh file under a new key. Never overwrites an existing blob."""
        for _ in range(_KEY_ATTEMPTS):
            blob_key = generate_blob_key(original_name)
            try:
                handle = await aiofiles.open(self.base_path / blob_key, "xb")
            except FileExistsError:
                logger.warning(f"Blob key collision on {blob_key}, generating a new key")
                continue
            except OSError as e:
                raise BlobStorageError(f"Could not create blob: {e}") from e
            return blob_key, handle
        raise BlobStorageError(f"Could not allocate a unique blob key after {_KEY_ATTEMPTS} attempts")

    async def put(self, source, original_name: str, size_limit: int | None = None) -> tuple[str, int]:
        """Copy ``source`` into a new blob. Returns ``(blob_key, byte_count)``.

        ``source`` is anything with an async ``read(size)``, such as FastAPI's
        ``UploadFile``. If the limit is exceeded, a storage error occurs or the
        task is cancelled, the partial blob is removed before the error propagates.
        """
        limit = settings.MAX_UPLOAD_BYTES if size_limit is None else size_limit
        try:
            self.ensure_ready()
        except OSError as e:
            raise BlobStorageError(f"Blob directory unavailable: {e}") from e

        blob_key, handle = await self._create(original_name)
        written = 0
        stored = False
        try:
            try:
                while chunk := await source.read(self.chunk_size):
                    written += len(chunk)
                    if written > limit:
                        raise BlobTooLargeError(limit)
                    await handle.write(chunk)
                await handle.flush()
                await asyncio.to_thread(os.fsync, handle.fileno())
            finally:
                await handle.close()
            stored = True
        except OSError as e:
            raise BlobStorageError(f"Failed writing blob {blob_key}: {e}") from e
        finally:
            if not stored:
                await self.delete(blob_key)

        logger.debug(f"Stored blob {blob_key} ({written} bytes)")
        return blob_key, written

    async def exists(self, blob_key: str) -> bool:
        path = self._path_for(blob_key)
        if path is None:
            return False
        return await aiofiles.os.path.isfile(path)

    async def open(self, blob_key: str) -> BlobStream:
        """Return a stream over the blob's bytes."""
        path = self._path_for(blob_key)
        if path is None:
            raise BlobNotFoundError(f"Invalid blob key {blob_key!r}")
        try:
            stat = await aiofiles.os.stat(path)
        except FileNotFoundError:
            raise BlobNotFoundError(f"Blob {blob_key!r} not found")
        except OSError as e:
            raise BlobStorageError(f"Failed reading blob {blob_key}: {e}") from e
        return BlobStream(path, stat.st_size, self.chunk_size)

    async def delete(self, blob_key: str) -> bool:
        """Best-effort removal. Failures are logged, never raised."""
        path = self._path_for(blob_key)
        if path is None:
            logger.warning(f"Refusing to delete invalid blob key {blob_key!r}")
            return False
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            logger.warning(f"Blob {blob_key} already gone")
            return False
        except OSError as e:
            logger.warning(f"Failed to delete blob {blob_key}: {e}")
            return False
        return True


file_storage = FileStorageService()


def get_file_storage() -> FileStorageService:
    """FastAPI dependency returning the shared blob store."""
    return file_storage
