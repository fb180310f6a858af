"""Key-addressed blob storage.

Maps a BlobKey to an opaque byte payload. The store keeps no index of its
own; the metadata index is maintained by ``SyncService``.
"""

from __future__ import annotations

import logging

from gesh.errors import BlobNotFoundError, StorageFailureError
from gesh.storage.backends.base import StorageBackend
from gesh.storage.naming import BLOB_SUFFIX, BlobKey, RootKey, blob_path, root_blob_dir

logger = logging.getLogger(__name__)


class BlobStore:
    """Reads, writes and deletes blob files under ``root``."""

    def __init__(self, root: str, backend: StorageBackend) -> None:
        self.root = root
        self.backend = backend

    def path_for(self, key: BlobKey) -> str:
        return blob_path(self.root, key)

    async def put(self, key: BlobKey, data: bytes) -> bool:
        """Store a payload, replacing any previous one.

        Returns:
            True if a blob already existed at this key.

        Raises:
            StorageFailureError: If the file cannot be written.
        """
        path = self.path_for(key)
        try:
            existed = await self.backend.exists(path)
            await self.backend.write_file(path, data)
        except OSError as e:
            raise StorageFailureError("Failed to store blob", detail=str(e)) from e
        return existed

    async def get(self, key: BlobKey) -> bytes:
        """Read a payload.

        Raises:
            BlobNotFoundError: If nothing is stored at this key.
            StorageFailureError: If the file exists but cannot be read.
        """
        try:
            return await self.backend.read_file(self.path_for(key))
        except FileNotFoundError as e:
            raise BlobNotFoundError("Blob not found") from e
        except OSError as e:
            raise StorageFailureError("Failed to read blob", detail=str(e)) from e

    async def delete(self, key: BlobKey) -> bool:
        """Delete a payload. Deleting an absent blob is not an error.

        Returns:
            True if a file was removed.
        """
        try:
            return await self.backend.delete_file(self.path_for(key))
        except OSError as e:
            raise StorageFailureError("Failed to delete blob", detail=str(e)) from e

    async def list_keys(self, root: RootKey) -> list[BlobKey]:
        """List the keys of every blob file present for a root."""
        keys = []
        files = await self.backend.list_files(root_blob_dir(self.root, root), suffix=BLOB_SUFFIX)
        for rel in files:
            parts = rel.split("/")
            if len(parts) != 2:
                logger.warning(f"Ignoring unexpected file in blob root {root}: {rel}")
                continue
            device_id, filename = parts
            keys.append(BlobKey(root.app_id, root.root_id, device_id, filename[: -len(BLOB_SUFFIX)]))
        return keys
