"""Tools API routes."""
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, UploadFile, File as FastAPIFile, Form
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from toolvault.database import get_db
from toolvault.schemas.tool import ToolResponse, UploadResponse, StatsResponse
from toolvault.services import catalog
from toolvault.services.downloads import open_download
from toolvault.services.errors import (
    BlobMissingError,
    InvalidUploadError,
    PayloadTooLargeError,
    ToolNotFoundError,
    UploadFailedError,
)
from toolvault.services.file_storage import FileStorageService, get_file_storage
from toolvault.services.uploads import upload_tool

router = APIRouter(prefix="/api", tags=["tools"])


@router.get("/tools", response_model=list[ToolResponse])
async def list_tools(db: AsyncSession = Depends(get_db)):
    """List all tools, newest upload first."""
    return await catalog.list_tools(db)


@router.get("/tools/{category}", response_model=list[ToolResponse])
async def list_tools_by_category(
    category: str,
    db: AsyncSession = Depends(get_db),
):
    """List tools in one category (exact, case-sensitive match), newest first."""
    return await catalog.list_tools(db, category=category)


@router.post("/upload", response_model=UploadResponse, status_code=201)
async def upload(
    tool_file: UploadFile | None = FastAPIFile(None, alias="toolFile"),
    name: str | None = Form(None),
    author: str | None = Form(None),
    category: str | None = Form(None),
    description: str | None = Form(None),
    db: AsyncSession = Depends(get_db),
    storage: FileStorageService = Depends(get_file_storage),
):
    """Upload a tool file with its metadata."""
    try:
        tool = await upload_tool(
            db,
            storage,
            tool_file,
            name=name,
            author=author,
            category=category,
            description=description,
        )
    except InvalidUploadError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PayloadTooLargeError as e:
        raise HTTPException(status_code=413, detail=str(e))
    except UploadFailedError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return {
        "id": tool.id,
        "message": "Tool uploaded successfully",
        "tool": ToolResponse.model_validate(tool),
    }


@router.get("/download/{tool_id}")
async def download(
    tool_id: int,
    db: AsyncSession = Depends(get_db),
    storage: FileStorageService = Depends(get_file_storage),
):
    """Download a tool's file. Counts the download before streaming starts."""
    try:
        result = await open_download(db, storage, tool_id)
    except ToolNotFoundError:
        raise HTTPException(status_code=404, detail="Tool not found")
    except BlobMissingError:
        raise HTTPException(status_code=500, detail="File not found on server")

    return StreamingResponse(
        result.stream,
        media_type="application/octet-stream",
        headers={
            "Content-Disposition": _content_disposition(result.filename),
            "Content-Length": str(result.size),
        },
    )


@router.get("/stats", response_model=StatsResponse)
async def get_stats(db: AsyncSession = Depends(get_db)):
    """Total tools and total downloads."""
    return await catalog.aggregate_stats(db)


def _content_disposition(filename: str) -> str:
    """Attachment header. Names that need escaping get an RFC 5987 filename* plus an ASCII fallback."""
    quoted = quote(filename, safe="")
    if quoted == filename:
        return f'attachment; filename="{filename}"'
    fallback = filename.encode("ascii", "ignore").decode("ascii")
    fallback = "".join(c if c.isprintable() and c not in '"\\/' else "_" for c in fallback) or "download"
    return f"attachment; filename=\"{fallback}\"; filename*=utf-8''{quoted}"
