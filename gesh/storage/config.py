"""Storage configuration model."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class StorageConfig(BaseModel):
    """Configuration for blob and metadata storage.

    Attributes:
        blob_root: Root directory for blob files.
        metadata_root: Root directory for per-root metadata indexes.
    """

    model_config = ConfigDict(frozen=True)

    blob_root: str = Field(default="./data/blobs", description="Blob storage root directory")
    metadata_root: str = Field(default="./data/metadata", description="Metadata index root directory")
