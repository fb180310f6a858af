"""FastAPI dependencies for root authorization and service access.

The authorizer and sync service are built once in ``gesh.main`` and held on
``app.state``; these dependencies only hand them to the routes.
"""

from __future__ import annotations

from fastapi import Depends, Request

from gesh.auth.registry import RootAuthorizer
from gesh.storage.service import SyncService


def get_authorizer(request: Request) -> RootAuthorizer:
    return request.app.state.authorizer


def get_sync_service(request: Request) -> SyncService:
    return request.app.state.sync_service


async def require_root_token(
    request: Request,
    app_id: str,
    root_id: str,
    authorizer: RootAuthorizer = Depends(get_authorizer),
) -> None:
    """Reject the request unless it carries the bearer token of the root.

    Raises:
        UnauthorizedError: Mapped to 401 by the application handlers.
    """
    authorizer.authorize(app_id, root_id, request.headers.get("Authorization"))
