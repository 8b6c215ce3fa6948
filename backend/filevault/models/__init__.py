"""Import all models so SQLAlchemy metadata knows about them."""
from filevault.models.base import Base
from filevault.models.tag import Tag, file_tags
from filevault.models.file_record import FileRecord

__all__ = ["Base", "Tag", "file_tags", "FileRecord"]
