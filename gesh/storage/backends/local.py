"""Local filesystem storage backend using pathlib."""

from __future__ import annotations

import os
import uuid
from pathlib import Path

from gesh.storage.backends.base import StorageBackend

TMP_SUFFIX = ".tmp"


class LocalStorageBackend(StorageBackend):
    """Pathlib-based local filesystem storage backend.

    Writes go to a sibling temp file which is then renamed over the target,
    so concurrent readers see either the old or the new content.
    """

    async def write_file(self, path: str, data: bytes) -> None:
        """Write binary data to a local file."""
        p = Path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        tmp = p.with_name(f".{p.name}.{uuid.uuid4().hex[:8]}{TMP_SUFFIX}")
        try:
            tmp.write_bytes(data)
            os.replace(tmp, p)
        except OSError:
            tmp.unlink(missing_ok=True)
            raise

    async def write_text(self, path: str, text: str) -> None:
        """Write text data to a local file."""
        await self.write_file(path, text.encode("utf-8"))

    async def read_file(self, path: str) -> bytes:
        """Read a local file."""
        return Path(path).read_bytes()

    async def read_text(self, path: str) -> str:
        """Read a local text file."""
        return Path(path).read_text(encoding="utf-8")

    async def delete_file(self, path: str) -> bool:
        """Delete a local file if present."""
        try:
            Path(path).unlink()
        except FileNotFoundError:
            return False
        return True

    async def exists(self, path: str) -> bool:
        """Check if a local file exists."""
        return Path(path).is_file()

    async def list_files(self, directory: str, suffix: str = "") -> list[str]:
        """List local files under a directory."""
        base = Path(directory)
        if not base.is_dir():
            return []

        files = []
        for item in base.rglob(f"*{suffix}"):
            # Skip in-flight temp files from write_file
            if item.is_file() and not item.name.endswith(TMP_SUFFIX):
                files.append(item.relative_to(base).as_posix())
        return sorted(files)
