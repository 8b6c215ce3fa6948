"""FileRecord model - file metadata (ciphertext lives in the blob store)."""
import uuid
from sqlalchemy import String, BigInteger, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from filevault.models.base import Base, TimestampMixin
from filevault.models.tag import Tag, file_tags


class FileRecord(Base, TimestampMixin):
    __tablename__ = "files"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    original_name: Mapped[str] = mapped_column(String(500), nullable=False)
    stored_name: Mapped[str] = mapped_column(String(600), nullable=False, unique=True, index=True)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # Set once at ingest, never updated.
    storage_path: Mapped[str] = mapped_column(String(1000), nullable=False)
    iv: Mapped[str] = mapped_column(String(32), nullable=False)

    tags: Mapped[list[Tag]] = relationship(secondary=file_tags, lazy="selectin")
