"""Secret registry and root authorizer.

The registry is a JSON file mapping appId -> rootId -> token, loaded once at
startup and never written by the gateway::

    {"app1": {"root1": "s3cret"}}
"""

from __future__ import annotations

import hmac
import json
import logging
from pathlib import Path

from pydantic import ConfigDict, RootModel, ValidationError

from gesh.errors import UnauthorizedError

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


class SecretRegistry(RootModel[dict[str, dict[str, str]]]):
    """Read-only appId -> rootId -> token mapping."""

    model_config = ConfigDict(frozen=True)

    def secret_for(self, app_id: str, root_id: str) -> str | None:
        return self.root.get(app_id, {}).get(root_id)

    @property
    def root_count(self) -> int:
        return sum(len(roots) for roots in self.root.values())


def load_secret_registry(path: str | Path) -> SecretRegistry:
    """Load the secret registry from a JSON file.

    Raises:
        RuntimeError: If the file is missing, unreadable or malformed.
    """
    try:
        raw = Path(path).read_text(encoding="utf-8")
        registry = SecretRegistry.model_validate(json.loads(raw))
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        logger.error(f"Failed to load secret registry from {path}: {e}")
        raise RuntimeError("Secret registry missing or invalid. Set SECRET_REGISTRY_PATH.") from e

    logger.info(f"Secret registry loaded: {len(registry.root)} app(s), {registry.root_count} root(s)")
    return registry


class RootAuthorizer:
    """Checks bearer tokens against the registry entry of a root."""

    def __init__(self, registry: SecretRegistry) -> None:
        self.registry = registry

    def authorize(self, app_id: str, root_id: str, authorization: str | None) -> None:
        """Validate an ``Authorization`` header value for (app_id, root_id).

        Raises:
            UnauthorizedError: If the header is missing, is not a bearer
                token, or does not match the root's secret.
        """
        if not authorization or not authorization.startswith(BEARER_PREFIX):
            raise UnauthorizedError("Missing bearer token")

        token = authorization[len(BEARER_PREFIX):].strip()
        secret = self.registry.secret_for(app_id, root_id)
        if not token or secret is None or not hmac.compare_digest(token.encode(), secret.encode()):
            logger.info(f"Rejected token for {app_id}/{root_id}")
            raise UnauthorizedError("Unauthorized")
