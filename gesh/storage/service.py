"""Sync service - pairs blob writes with metadata index updates.

Every upload and delete runs the blob operation and the index
load/mutate/save under one lock per root, so two requests on the same root
never interleave their index writes. Requests on different roots run in
parallel.

Examples:
    >>> from gesh.storage import StorageConfig, SyncService
    >>> service = SyncService.from_config(StorageConfig(blob_root="/tmp/b", metadata_root="/tmp/m"))
    >>> result = await service.upload(BlobKey.parse("app1", "root1", "devA", "ev1"), b"hello")
    >>> result.created, result.size
    (True, 5)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from gesh.errors import GeshError
from gesh.storage.backends.base import StorageBackend
from gesh.storage.backends.local import LocalStorageBackend
from gesh.storage.blobs import BlobStore
from gesh.storage.config import StorageConfig
from gesh.storage.index import (
    BlobEntry,
    MetadataIndexStore,
    iter_entries,
    remove,
    upsert,
    utc_timestamp,
)
from gesh.storage.naming import BlobKey, RootKey

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadResult:
    """Outcome of an upload."""

    created_at: str
    size: int
    created: bool


@dataclass
class DivergenceReport:
    """Differences between a root's index and its blob files.

    Attributes:
        missing_blobs: Indexed entries whose blob file is absent.
        orphan_blobs: Blob files with no index entry.
    """

    root: RootKey
    indexed: int = 0
    stored: int = 0
    missing_blobs: list[BlobKey] = field(default_factory=list)
    orphan_blobs: list[BlobKey] = field(default_factory=list)

    @property
    def consistent(self) -> bool:
        return not self.missing_blobs and not self.orphan_blobs


class RootLocks:
    """Lazily created asyncio locks, one per root, kept for process lifetime."""

    def __init__(self) -> None:
        self._locks: dict[RootKey, asyncio.Lock] = {}

    def get(self, root: RootKey) -> asyncio.Lock:
        lock = self._locks.get(root)
        if lock is None:
            lock = self._locks[root] = asyncio.Lock()
        return lock

    def __len__(self) -> int:
        return len(self._locks)


class SyncService:
    """Coordinates the blob store and the metadata index.

    Attributes:
        config: Storage configuration.
        blobs: Blob file store.
        index: Metadata index store.
    """

    def __init__(self, config: StorageConfig, backend: StorageBackend | None = None) -> None:
        self.config = config
        backend = backend or LocalStorageBackend()
        self.blobs = BlobStore(config.blob_root, backend)
        self.index = MetadataIndexStore(config.metadata_root, backend)
        self.locks = RootLocks()

    @classmethod
    def from_config(cls, config: StorageConfig) -> "SyncService":
        """Create a SyncService backed by the local filesystem."""
        return cls(config=config, backend=LocalStorageBackend())

    async def upload(self, key: BlobKey, data: bytes) -> UploadResult:
        """Store a blob and record it in the root's index.

        If the blob write fails the index is not touched. If the index update
        fails after the blob was written, the blob is left in place without an
        entry; the failure is logged as a divergence and re-raised.
        """
        async with self.locks.get(key.root):
            existed = await self.blobs.put(key, data)
            entry = BlobEntry(
                device_id=key.device_id,
                event_id=key.event_id,
                created_at=utc_timestamp(),
                size=len(data),
            )
            try:
                index = await self.index.load(key.root)
                await self.index.save(key.root, upsert(index, entry))
            except GeshError:
                logger.error(f"Divergence: blob {self._describe(key)} written but index update failed")
                raise

        logger.info(f"Blob {'updated' if existed else 'created'}: {self._describe(key)} ({entry.size} bytes)")
        return UploadResult(created_at=entry.created_at, size=entry.size, created=not existed)

    async def download(self, key: BlobKey) -> bytes:
        """Read a blob. Raises BlobNotFoundError if absent."""
        return await self.blobs.get(key)

    async def delete(self, key: BlobKey) -> None:
        """Delete a blob and its index entry. Absent targets are not errors."""
        async with self.locks.get(key.root):
            removed = await self.blobs.delete(key)
            index = await self.index.load(key.root)
            if index.get(key.device_id, key.event_id) is not None:
                await self.index.save(key.root, remove(index, key.device_id, key.event_id))
            elif removed:
                logger.warning(f"Deleted blob {self._describe(key)} had no index entry")

        if removed:
            logger.info(f"Blob deleted: {self._describe(key)}")

    async def list_entries(self, root: RootKey, device_id: str | None = None) -> list[BlobEntry]:
        """List a root's entries from its index, optionally for one device."""
        index = await self.index.load(root)
        return list(iter_entries(index, device_id))

    async def audit(self, root: RootKey) -> DivergenceReport:
        """Compare a root's index with the blob files actually stored."""
        async with self.locks.get(root):
            index = await self.index.load(root)
            stored = set(await self.blobs.list_keys(root))

        indexed = {
            BlobKey(root.app_id, root.root_id, entry.device_id, entry.event_id)
            for entry in iter_entries(index)
        }
        report = DivergenceReport(
            root=root,
            indexed=len(indexed),
            stored=len(stored),
            missing_blobs=sorted(indexed - stored),
            orphan_blobs=sorted(stored - indexed),
        )
        if not report.consistent:
            logger.warning(
                f"Divergence in {root.app_id}/{root.root_id}: "
                f"{len(report.missing_blobs)} missing blob(s), {len(report.orphan_blobs)} orphan blob(s)"
            )
        return report

    @staticmethod
    def _describe(key: BlobKey) -> str:
        return "/".join(key)
