"""Blob storage for ciphertext. Local filesystem under a configured root."""
import logging
import os
from pathlib import Path

import aiofiles
import aiofiles.os

from filevault.errors import BlobReadError, BlobWriteError

logger = logging.getLogger(__name__)


class LocalBlobStore:
    """Reads and writes ciphertext blobs addressed relative to ``root``."""

    def __init__(self, root: str | Path):
        self.base_path = Path(root)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _resolve(self, storage_path: str) -> Path:
        path = (self.base_path / storage_path).resolve()
        if not path.is_relative_to(self.base_path.resolve()):
            raise ValueError(f"Storage path escapes blob root: {storage_path}")
        return path

    async def write(self, storage_path: str, data: bytes) -> None:
        """Write a new blob. Never overwrites an existing one."""
        try:
            path = self._resolve(storage_path)
            async with aiofiles.open(path, "xb") as f:
                await f.write(data)
        except (OSError, ValueError) as e:
            raise BlobWriteError(f"Failed to write blob {storage_path}: {e}") from e

    async def read(self, storage_path: str) -> bytes:
        try:
            path = self._resolve(storage_path)
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except (OSError, ValueError) as e:
            raise BlobReadError(f"Failed to read blob {storage_path}: {e}") from e

    async def delete(self, storage_path: str) -> None:
        """Delete a blob if present."""
        path = self._resolve(storage_path)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            logger.debug(f"Blob {storage_path} already absent")

    async def exists(self, storage_path: str) -> bool:
        return await aiofiles.os.path.exists(self._resolve(storage_path))

    def list_blobs(self, suffix: str = "") -> list[str]:
        """Blob keys currently on disk, for reconciliation checks."""
        return sorted(
            entry.name
            for entry in os.scandir(self.base_path)
            if entry.is_file() and entry.name.endswith(suffix)
        )
