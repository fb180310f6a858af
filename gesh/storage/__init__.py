"""Blob storage package for GESH.

Provides key-addressed blob files, the per-root metadata index, and the
sync service that keeps the two in step.

Examples:
    >>> from gesh.storage import StorageConfig, SyncService
    >>> service = SyncService.from_config(StorageConfig())
    >>> entries = await service.list_entries(RootKey.parse("app1", "root1"))
"""

from gesh.storage.blobs import BlobStore
from gesh.storage.config import StorageConfig
from gesh.storage.index import BlobEntry, MetadataIndex, MetadataIndexStore
from gesh.storage.naming import BlobKey, RootKey, validate_segment
from gesh.storage.service import DivergenceReport, SyncService, UploadResult

__all__ = [
    "BlobEntry",
    "BlobKey",
    "BlobStore",
    "DivergenceReport",
    "MetadataIndex",
    "MetadataIndexStore",
    "RootKey",
    "StorageConfig",
    "SyncService",
    "UploadResult",
    "validate_segment",
]
