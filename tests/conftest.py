"""
Pytest configuration and fixtures for GESH tests.

Every test gets its own blob and metadata directories under ``tmp_path`` and
an in-memory secret registry, so no environment setup is needed.
"""
from typing import Generator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from gesh.auth.registry import SecretRegistry
from gesh.config import Settings
from gesh.main import create_app
from gesh.storage import StorageConfig, SyncService

APP_ID = "app1"
ROOT_ID = "root1"
TOKEN = "root1-secret"
OTHER_ROOT_ID = "root2"
OTHER_TOKEN = "root2-secret"


# ============================================
# Storage Fixtures
# ============================================

@pytest.fixture
def storage_config(tmp_path) -> StorageConfig:
    """Storage config rooted in the test's temp directory."""
    return StorageConfig(
        blob_root=str(tmp_path / "blobs"),
        metadata_root=str(tmp_path / "metadata"),
    )


@pytest.fixture
def sync_service(storage_config: StorageConfig) -> SyncService:
    """Sync service on the local filesystem."""
    return SyncService.from_config(storage_config)


# ============================================
# Application Fixtures
# ============================================

@pytest.fixture
def registry() -> SecretRegistry:
    """Secret registry with two roots of one app."""
    return SecretRegistry({APP_ID: {ROOT_ID: TOKEN, OTHER_ROOT_ID: OTHER_TOKEN}})


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings pointing at temp directories with a small upload limit."""
    return Settings(
        _env_file=None,
        BLOB_BASE_DIR=str(tmp_path / "blobs"),
        METADATA_BASE_DIR=str(tmp_path / "metadata"),
        SECRET_REGISTRY_PATH=str(tmp_path / "secrets.json"),
        ENVIRONMENT="development",
        UPLOAD_LIMIT="1kb",
        DEBUG=True,
    )


@pytest.fixture
def test_app(test_settings: Settings, registry: SecretRegistry, sync_service: SyncService) -> FastAPI:
    """Application wired to the temp storage and test registry."""
    return create_app(settings=test_settings, registry=registry, sync_service=sync_service)


@pytest.fixture
def client(test_app: FastAPI) -> Generator[TestClient, None, None]:
    """Synchronous test client (runs the lifespan)."""
    with TestClient(test_app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers() -> dict[str, str]:
    """Authorization header for app1/root1."""
    return {"Authorization": f"Bearer {TOKEN}"}


# ============================================
# Pytest Configuration
# ============================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "fast: Fast unit tests (no network, temp directories only)"
    )
    config.addinivalue_line(
        "markers", "integration: Tests that exercise the HTTP API end to end"
    )
