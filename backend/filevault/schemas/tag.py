"""Tag response schemas."""
from datetime import datetime
from typing import Optional

from filevault.schemas.base import CamelORMModel


class TagResponse(CamelORMModel):
    id: int
    name: str
    created_at: Optional[datetime] = None
