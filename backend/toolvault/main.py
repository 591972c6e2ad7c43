"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from toolvault.config import settings
from toolvault.database import engine, get_db
from toolvault.middleware import UploadSizeLimitMiddleware
from toolvault.models import Base
from toolvault.services.errors import StorageError
from toolvault.services.file_storage import file_storage

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and the blob directory on startup."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    file_storage.ensure_ready()

    logger.info(f"Tool Vault listening on {settings.API_HOST}:{settings.API_PORT}")
    logger.info(f"Blob directory: {file_storage.base_path.resolve()}")
    logger.info(f"Database: {engine.url.render_as_string(hide_password=True)}")

    yield

    await engine.dispose()


app = FastAPI(
    title="Tool Vault API",
    version="1.0.0",
    description="Upload, catalog and download tool binaries.",
    lifespan=lifespan,
)

app.add_middleware(UploadSizeLimitMiddleware)

# CORS
origins = [o.strip() for o in settings.CORS_ORIGINS.split(",")]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    logger.error(f"Storage failure on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"detail": str(exc)})


@app.get("/api/health")
@app.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    """Verify API and database connectivity."""
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        await db.execute(text("SELECT 1"))
        return {
            "status": "ok",
            "message": "Tool Vault server is running",
            "database": "connected",
            "timestamp": timestamp,
        }
    except Exception as e:
        return {
            "status": "error",
            "message": "Tool Vault server cannot reach its database",
            "database": str(e),
            "timestamp": timestamp,
        }


@app.get("/")
async def index():
    return {
        "message": "Tool Vault API",
        "endpoints": {
            "GET /api/tools": "List all tools",
            "GET /api/tools/{category}": "List tools in a category",
            "POST /api/upload": "Upload a new tool file",
            "GET /api/download/{id}": "Download a tool file",
            "GET /api/stats": "Platform statistics",
        },
    }


# Register routers
from toolvault.routes.tools import router as tools_router
app.include_router(tools_router)


def run():
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT)
