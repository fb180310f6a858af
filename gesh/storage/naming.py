"""Key validation and path layout for blob storage.

Every component of a blob key comes from the request URL, so each one is
checked against a strict allow-list before it is used as a path segment.

Layout:
    blobs:    {blob_root}/{app_id}/{root_id}/{device_id}/{event_id}.blob
    metadata: {metadata_root}/{app_id}/{root_id}.json

Examples:
    >>> from gesh.storage.naming import BlobKey, blob_path, validate_segment
    >>> key = BlobKey.parse("app1", "root1", "devA", "ev1")
    >>> blob_path("/data/blobs", key)
    '/data/blobs/app1/root1/devA/ev1.blob'
    >>> validate_segment("..", "device_id")
    Traceback (most recent call last):
    ...
    gesh.errors.InvalidRequestError: Invalid device_id
"""

from __future__ import annotations

import re
from typing import NamedTuple

from gesh.errors import InvalidRequestError

SEGMENT_PATTERN = re.compile(r"[A-Za-z0-9_-]{1,128}")

BLOB_SUFFIX = ".blob"
INDEX_SUFFIX = ".json"


def validate_segment(value: str, name: str) -> str:
    """Check that a key component is safe to use as a path segment.

    Args:
        value: Raw component from the request.
        name: Component name, used in the error message.

    Returns:
        The unchanged value.

    Raises:
        InvalidRequestError: If the value contains anything outside
            ``[A-Za-z0-9_-]`` or is empty or longer than 128 characters.
    """
    if not isinstance(value, str) or not SEGMENT_PATTERN.fullmatch(value):
        raise InvalidRequestError(
            f"Invalid {name}",
            detail="Only letters, digits, '-' and '_' are allowed (1-128 characters)",
        )
    return value


class RootKey(NamedTuple):
    """Identifies a sync root: one token, one metadata index."""

    app_id: str
    root_id: str

    @classmethod
    def parse(cls, app_id: str, root_id: str) -> "RootKey":
        return cls(
            validate_segment(app_id, "app_id"),
            validate_segment(root_id, "root_id"),
        )


class BlobKey(NamedTuple):
    """Identifies a single blob within a root."""

    app_id: str
    root_id: str
    device_id: str
    event_id: str

    @classmethod
    def parse(cls, app_id: str, root_id: str, device_id: str, event_id: str) -> "BlobKey":
        """Build a key, validating every component."""
        return cls(
            validate_segment(app_id, "app_id"),
            validate_segment(root_id, "root_id"),
            validate_segment(device_id, "device_id"),
            validate_segment(event_id, "event_id"),
        )

    @property
    def root(self) -> RootKey:
        return RootKey(self.app_id, self.root_id)


def blob_path(blob_root: str, key: BlobKey) -> str:
    """Full path of the file holding a blob."""
    return f"{blob_root}/{key.app_id}/{key.root_id}/{key.device_id}/{key.event_id}{BLOB_SUFFIX}"


def root_blob_dir(blob_root: str, root: RootKey) -> str:
    """Directory holding every device folder of a root."""
    return f"{blob_root}/{root.app_id}/{root.root_id}"


def metadata_path(metadata_root: str, root: RootKey) -> str:
    """Full path of a root's metadata index file."""
    return f"{metadata_root}/{root.app_id}/{root.root_id}{INDEX_SUFFIX}"
