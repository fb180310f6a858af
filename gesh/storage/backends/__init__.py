"""Storage backends for blob and index I/O."""

from gesh.storage.backends.base import StorageBackend
from gesh.storage.backends.local import LocalStorageBackend

__all__ = ["StorageBackend", "LocalStorageBackend"]
