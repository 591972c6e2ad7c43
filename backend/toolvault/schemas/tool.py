"""Tool request/response schemas."""
from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class ToolResponse(BaseModel):
    id: int
    name: str
    author: str
    category: str
    description: Optional[str] = None
    original_name: str
    file_size: int
    upload_date: datetime
    download_count: int = 0

    model_config = {"from_attributes": True}


class UploadResponse(BaseModel):
    id: int
    message: str
    tool: ToolResponse


class StatsResponse(BaseModel):
    total_tools: int = 0
    total_downloads: int = 0
