"""Sync API endpoints - blob upload, download, delete and listing.

Endpoints:
    PUT    /v1/sync/{app_id}/{root_id}/{device_id}/{event_id} - Store a blob
    GET    /v1/sync/{app_id}/{root_id}/{device_id}/{event_id} - Fetch a blob
    DELETE /v1/sync/{app_id}/{root_id}/{device_id}/{event_id} - Delete a blob
    GET    /v1/sync/{app_id}/{root_id}?deviceId=...            - List entries

Every route requires ``Authorization: Bearer <token>`` for the root.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, Request, Response, status

from gesh.auth.dependencies import get_sync_service, require_root_token
from gesh.errors import InvalidRequestError, PayloadTooLargeError
from gesh.schemas import BlobEntryResponse, ErrorResponse, UploadResponse
from gesh.storage.naming import BlobKey, RootKey
from gesh.storage.service import SyncService

logger = logging.getLogger(__name__)

OCTET_STREAM = "application/octet-stream"

router = APIRouter(
    prefix="/sync/{app_id}/{root_id}",
    tags=["sync"],
    dependencies=[Depends(require_root_token)],
    responses={401: {"model": ErrorResponse}, 400: {"model": ErrorResponse}},
)


async def read_binary_body(request: Request, limit: int) -> bytes:
    """Read a raw ``application/octet-stream`` body of at most ``limit`` bytes.

    Raises:
        InvalidRequestError: If the content type is not binary. An empty
            binary body is a valid zero-byte payload.
        PayloadTooLargeError: If the body exceeds ``limit``.
    """
    content_type = request.headers.get("content-type", "").split(";")[0].strip().lower()
    if content_type != OCTET_STREAM:
        raise InvalidRequestError("Binary body required", detail=f"Content-Type must be {OCTET_STREAM}")

    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        raise PayloadTooLargeError("Payload too large", detail=f"Limit is {limit} bytes")

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > limit:
            raise PayloadTooLargeError("Payload too large", detail=f"Limit is {limit} bytes")

    return bytes(body)


@router.get("", response_model=list[BlobEntryResponse])
async def list_entries(
    app_id: str,
    root_id: str,
    device_id: str | None = Query(None, alias="deviceId"),
    service: SyncService = Depends(get_sync_service),
) -> list[BlobEntryResponse]:
    """List the root's metadata entries, optionally for one device."""
    entries = await service.list_entries(RootKey.parse(app_id, root_id), device_id or None)
    return [BlobEntryResponse(**entry.model_dump()) for entry in entries]


@router.put(
    "/{device_id}/{event_id}",
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
    responses={200: {"model": UploadResponse}, 413: {"model": ErrorResponse}},
)
async def put_blob(
    app_id: str,
    root_id: str,
    device_id: str,
    event_id: str,
    request: Request,
    response: Response,
    service: SyncService = Depends(get_sync_service),
) -> UploadResponse:
    """Store a blob. 201 when new, 200 when it replaced an existing one."""
    key = BlobKey.parse(app_id, root_id, device_id, event_id)
    data = await read_binary_body(request, request.app.state.settings.UPLOAD_LIMIT)

    result = await service.upload(key, data)
    if not result.created:
        response.status_code = status.HTTP_200_OK
    return UploadResponse(created_at=result.created_at, size=result.size)


@router.get(
    "/{device_id}/{event_id}",
    response_class=Response,
    responses={200: {"content": {OCTET_STREAM: {}}}, 404: {"model": ErrorResponse}},
)
async def get_blob(
    app_id: str,
    root_id: str,
    device_id: str,
    event_id: str,
    service: SyncService = Depends(get_sync_service),
) -> Response:
    """Return the raw blob bytes."""
    key = BlobKey.parse(app_id, root_id, device_id, event_id)
    data = await service.download(key)
    return Response(content=data, media_type=OCTET_STREAM)


@router.delete(
    "/{device_id}/{event_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
async def delete_blob(
    app_id: str,
    root_id: str,
    device_id: str,
    event_id: str,
    service: SyncService = Depends(get_sync_service),
) -> Response:
    """Delete a blob and its index entry. Succeeds if already absent."""
    key = BlobKey.parse(app_id, root_id, device_id, event_id)
    await service.delete(key)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
