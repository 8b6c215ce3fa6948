"""Storage orchestrator: ingest, retrieve and search encrypted files.

Ingest ordering is blob first, record second. The blob write is staged: if
tag resolution or record creation fails afterwards, the blob is deleted
before the error propagates, so a blob exists iff its record exists. There is
no cross-resource transaction; a failed rollback is logged as an orphan and
picked up by ``find_orphaned_blobs``. Records whose blob vanished
afterwards are reported by ``find_missing_blobs``.
"""
import asyncio
import logging
import time
from collections.abc import Iterable
from contextlib import asynccontextmanager
from pathlib import PurePosixPath, PureWindowsPath

from filevault.errors import DecryptionError, NotFoundError, ValidationError
from filevault.models.file_record import FileRecord
from filevault.services.cipher import CipherUnit
from filevault.services.file_storage import LocalBlobStore
from filevault.services.metadata_repository import FileRecordDraft, MetadataRepository
from filevault.services.tag_registry import TagRegistry, parse_tag_string

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 10 * 1024 * 1024

ALLOWED_MIME_TYPES = frozenset({
    "image/jpeg",
    "image/png",
    "application/pdf",
    "text/plain",
})

BLOB_SUFFIX = ".enc"

# Column limits of FileRecord.original_name and Tag.name.
MAX_NAME_LENGTH = 500
MAX_TAG_LENGTH = 100

# Filesystems cap a single path component at 255 bytes; leave room for the
# timestamp prefix and BLOB_SUFFIX.
MAX_BASENAME_BYTES = 200


def _clip_utf8(value: str, max_bytes: int) -> str:
    return value.encode("utf-8")[:max_bytes].decode("utf-8", errors="ignore")


def clip_basename(basename: str, max_bytes: int = MAX_BASENAME_BYTES) -> str:
    """Shorten ``basename`` to ``max_bytes`` of UTF-8, keeping its extension."""
    if len(basename.encode("utf-8")) <= max_bytes:
        return basename
    stem, dot, ext = basename.rpartition(".")
    if not dot or not stem or len(ext.encode("utf-8")) > max_bytes // 4:
        return _clip_utf8(basename, max_bytes)
    suffix = f".{ext}"
    return _clip_utf8(stem, max_bytes - len(suffix.encode("utf-8"))) + suffix


def make_stored_name(original_name: str, now_ms: int | None = None) -> str:
    """``<epoch millis>-<basename>``. Directory components are stripped and
    long basenames clipped so the blob name stays a valid filename."""
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    basename = PureWindowsPath(PurePosixPath(original_name).name).name
    return f"{now_ms}-{clip_basename(basename) or 'unnamed'}"


class StorageOrchestrator:
    """Ties the cipher, blob store, tag registry and metadata repository together."""

    def __init__(
        self,
        cipher: CipherUnit,
        blob_store: LocalBlobStore,
        tag_registry: TagRegistry,
        repository: MetadataRepository,
        max_upload_bytes: int = MAX_UPLOAD_BYTES,
        allowed_mime_types: frozenset[str] = ALLOWED_MIME_TYPES,
    ):
        self.cipher = cipher
        self.blob_store = blob_store
        self.tag_registry = tag_registry
        self.repository = repository
        self.max_upload_bytes = max_upload_bytes
        self.allowed_mime_types = allowed_mime_types

    def validate(
        self,
        plaintext: bytes,
        mime_type: str | None,
        original_name: str = "",
        tag_names: Iterable[str] = (),
    ) -> None:
        if len(plaintext) > self.max_upload_bytes:
            raise ValidationError(
                f"File size {len(plaintext)} exceeds limit of {self.max_upload_bytes} bytes",
                reason=ValidationError.TOO_LARGE,
            )
        if mime_type not in self.allowed_mime_types:
            raise ValidationError(
                f"Invalid file type: {mime_type}", reason=ValidationError.UNSUPPORTED_TYPE
            )
        if len(original_name) > MAX_NAME_LENGTH:
            raise ValidationError(f"File name longer than {MAX_NAME_LENGTH} characters")
        for name in tag_names:
            if len(name) > MAX_TAG_LENGTH:
                raise ValidationError(f"Tag longer than {MAX_TAG_LENGTH} characters: {name[:20]}...")

    @asynccontextmanager
    async def _staged_blob(self, storage_path: str, ciphertext: bytes):
        """Write the blob; delete it again if the enclosed block raises."""
        await self.blob_store.write(storage_path, ciphertext)
        try:
            yield storage_path
        except BaseException:
            try:
                await self.blob_store.delete(storage_path)
                logger.warning(f"Rolled back blob {storage_path} after failed ingest")
            except Exception as cleanup_error:
                logger.error(
                    f"Orphaned blob {storage_path}: rollback failed: {cleanup_error}"
                )
            raise

    async def ingest(
        self,
        plaintext: bytes,
        original_name: str | None,
        mime_type: str | None,
        raw_tag_string: str | None = "",
    ) -> FileRecord:
        """Encrypt and store a file, returning the persisted record."""
        original_name = (original_name or "").strip() or "unnamed"
        tag_names = parse_tag_string(raw_tag_string)
        self.validate(plaintext, mime_type, original_name, tag_names)

        stored_name = make_stored_name(original_name)
        storage_path = f"{stored_name}{BLOB_SUFFIX}"

        iv, ciphertext = await asyncio.to_thread(self.cipher.encrypt, plaintext)

        async with self._staged_blob(storage_path, ciphertext):
            tag_ids = await self.tag_registry.resolve(tag_names)
            record = await self.repository.create(
                FileRecordDraft(
                    original_name=original_name,
                    stored_name=stored_name,
                    mime_type=mime_type,
                    size_bytes=len(plaintext),
                    storage_path=storage_path,
                    iv=iv.hex(),
                ),
                tag_ids,
            )

        logger.info(
            f"Stored {record.stored_name} ({record.size_bytes} bytes, {len(record.tags)} tag(s))"
        )
        return record

    async def describe(self, stored_name: str) -> FileRecord:
        record = await self.repository.find_by_stored_name(stored_name)
        if record is None:
            raise NotFoundError(f"File not found: {stored_name}")
        return record

    async def retrieve(self, stored_name: str) -> tuple[str, bytes]:
        """Return ``(mime_type, plaintext)`` for a stored file."""
        record = await self.describe(stored_name)
        ciphertext = await self.blob_store.read(record.storage_path)
        try:
            iv = bytes.fromhex(record.iv)
        except ValueError:
            raise DecryptionError(f"Stored IV for {stored_name} is not valid hex") from None
        plaintext = await asyncio.to_thread(self.cipher.decrypt, iv, ciphertext)
        return record.mime_type, plaintext

    async def search(self, query: str | None) -> list[FileRecord]:
        """Search metadata only; ciphertext is never read."""
        return await self.repository.search(query)

    async def list_files(self) -> list[FileRecord]:
        return await self.repository.list_all()

    async def find_orphaned_blobs(self) -> list[str]:
        """Blob keys on disk with no file record referencing them."""
        known = await self.repository.list_storage_paths()
        return [
            key for key in self.blob_store.list_blobs(suffix=BLOB_SUFFIX) if key not in known
        ]

    async def find_missing_blobs(self) -> list[str]:
        """Storage paths of file records whose blob is gone."""
        on_disk = set(self.blob_store.list_blobs(suffix=BLOB_SUFFIX))
        known = await self.repository.list_storage_paths()
        return sorted(path for path in known if path not in on_disk)
