"""File response schemas. The IV is never exposed."""
from datetime import datetime
from typing import Optional

from filevault.schemas.base import CamelORMModel


class FileResponse(CamelORMModel):
    id: str
    original_name: str
    stored_name: str
    mime_type: str
    size_bytes: int
    storage_path: str
    tags: list[str] = []
    created_at: Optional[datetime] = None
