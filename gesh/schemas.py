"""
Pydantic schemas for API responses.
"""
from pydantic import BaseModel, ConfigDict, Field


class UploadResponse(BaseModel):
    """Result of storing a blob."""
    model_config = ConfigDict(json_schema_extra={
        "example": {"created_at": "2026-10-19T12:00:00.000Z", "size": 5}
    })

    created_at: str = Field(..., description="ISO-8601 UTC time the blob was stored")
    size: int = Field(..., ge=0, description="Payload size in bytes")


class BlobEntryResponse(BaseModel):
    """One entry of a root's metadata index."""
    model_config = ConfigDict(json_schema_extra={
        "example": {
            "device_id": "devA",
            "event_id": "ev1",
            "created_at": "2026-10-19T12:00:00.000Z",
            "size": 5,
        }
    })

    device_id: str
    event_id: str
    created_at: str
    size: int = Field(..., ge=0)


class ErrorResponse(BaseModel):
    """Error response body."""
    error: str
    detail: str | None = None


class HealthResponse(BaseModel):
    """Health check response."""
    ok: bool
    version: str
