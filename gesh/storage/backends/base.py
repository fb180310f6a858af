"""Abstract base class for storage backends."""

from __future__ import annotations

from abc import ABC, abstractmethod


class StorageBackend(ABC):
    """Abstract storage backend for blob and index I/O.

    Implementations must replace files as a whole: a reader never observes a
    partially written file. Missing files are reported with the builtin
    ``FileNotFoundError``; any other failure propagates as ``OSError``.
    """

    @abstractmethod
    async def write_file(self, path: str, data: bytes) -> None:
        """Write binary data to a file, replacing it atomically.

        Args:
            path: Full file path. Parent directories are created as needed.
            data: Binary data to write.
        """

    @abstractmethod
    async def write_text(self, path: str, text: str) -> None:
        """Write UTF-8 text to a file, replacing it atomically.

        Args:
            path: Full file path.
            text: Text content to write.
        """

    @abstractmethod
    async def read_file(self, path: str) -> bytes:
        """Read a file's bytes.

        Args:
            path: Full file path.

        Raises:
            FileNotFoundError: If the file does not exist.
        """

    @abstractmethod
    async def read_text(self, path: str) -> str:
        """Read a UTF-8 text file.

        Args:
            path: Full file path.

        Raises:
            FileNotFoundError: If the file does not exist.
        """

    @abstractmethod
    async def delete_file(self, path: str) -> bool:
        """Delete a file.

        Args:
            path: Full file path.

        Returns:
            True if a file was removed, False if it was already absent.
        """

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Check if a file exists.

        Args:
            path: Path to check.

        Returns:
            True if the path is an existing file.
        """

    @abstractmethod
    async def list_files(self, directory: str, suffix: str = "") -> list[str]:
        """List files under a directory, recursively.

        Args:
            directory: Directory to scan.
            suffix: Only return files whose name ends with this suffix.

        Returns:
            Sorted paths relative to ``directory``, using forward slashes.
            Empty if the directory does not exist.
        """
