"""Auth module - secret registry and per-root bearer token checks."""

from gesh.auth.dependencies import get_authorizer, get_sync_service, require_root_token
from gesh.auth.registry import RootAuthorizer, SecretRegistry, load_secret_registry

__all__ = [
    "RootAuthorizer",
    "SecretRegistry",
    "get_authorizer",
    "get_sync_service",
    "load_secret_registry",
    "require_root_token",
]
