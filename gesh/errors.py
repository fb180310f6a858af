"""Exceptions for GESH.

All gateway exceptions inherit from GeshError. Each class carries the HTTP
status the API maps it to, so the exception handlers in ``gesh.main`` stay
generic.

Client-facing conditions (4xx) are expected and are not logged as faults.
StorageFailureError and its subclasses are server faults.
"""

from __future__ import annotations


class GeshError(Exception):
    """Base exception for gateway operations."""

    status_code: int = 500

    def __init__(self, message: str, detail: str | None = None) -> None:
        self.message = message
        self.detail = detail
        super().__init__(message)


class UnauthorizedError(GeshError):
    """Raised when a bearer token is missing or does not match the root."""

    status_code = 401


class InvalidRequestError(GeshError):
    """Raised for malformed keys or request bodies."""

    status_code = 400


class PayloadTooLargeError(InvalidRequestError):
    """Raised when an upload exceeds the configured limit."""

    status_code = 413


class BlobNotFoundError(GeshError):
    """Raised when a requested blob does not exist."""

    status_code = 404


class StorageFailureError(GeshError):
    """Raised when a blob or index read/write fails."""

    status_code = 500


class IndexCorruptError(StorageFailureError):
    """Raised when a persisted metadata index cannot be parsed.

    A corrupt index is never treated as empty: doing so would orphan every
    blob it referenced.
    """

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__("Metadata index is corrupt", detail=f"{path}: {reason}")
