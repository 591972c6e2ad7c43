"""Import all models so SQLAlchemy metadata knows about them."""
from toolvault.models.base import Base
from toolvault.models.tool import Tool

__all__ = ["Base", "Tool"]
