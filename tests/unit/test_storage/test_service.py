"""Tests for gesh.storage.service module.

Covers:
    - upload/download/delete/list_entries on the local filesystem
    - created vs updated reporting
    - failure ordering between blob and index writes
    - per-root serialization under concurrent requests
    - audit divergence report
"""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from gesh.errors import BlobNotFoundError, IndexCorruptError, StorageFailureError
from gesh.storage.backends.local import LocalStorageBackend
from gesh.storage.config import StorageConfig
from gesh.storage.naming import BlobKey, RootKey
from gesh.storage.service import RootLocks, SyncService

ROOT = RootKey("app1", "root1")
KEY = BlobKey("app1", "root1", "devA", "ev1")


class TestUpload:
    """Tests for SyncService.upload()."""

    @pytest.mark.asyncio
    async def test_first_upload_is_created(self, sync_service):
        result = await sync_service.upload(KEY, b"hello")
        assert result.created is True
        assert result.size == 5
        assert result.created_at.endswith("Z")

    @pytest.mark.asyncio
    async def test_reupload_is_update(self, sync_service):
        first = await sync_service.upload(KEY, b"hello")
        with patch("gesh.storage.service.utc_timestamp", return_value="2099-01-01T00:00:00.000Z"):
            second = await sync_service.upload(KEY, b"hi")

        assert second.created is False
        assert second.size == 2
        assert second.created_at != first.created_at

        entries = await sync_service.list_entries(ROOT)
        assert len(entries) == 1
        assert entries[0].size == 2
        assert entries[0].created_at == "2099-01-01T00:00:00.000Z"

    @pytest.mark.asyncio
    async def test_roundtrip(self, sync_service):
        payload = b"\x00encrypted\xffpayload" * 100
        await sync_service.upload(KEY, payload)
        assert await sync_service.download(KEY) == payload

    @pytest.mark.asyncio
    async def test_blob_failure_leaves_index_untouched(self, storage_config):
        service = SyncService(config=storage_config, backend=LocalStorageBackend())
        service.blobs.backend = AsyncMock()
        service.blobs.backend.exists = AsyncMock(return_value=False)
        service.blobs.backend.write_file = AsyncMock(side_effect=OSError("disk full"))

        with pytest.raises(StorageFailureError, match="Failed to store blob"):
            await service.upload(KEY, b"hello")
        assert await service.list_entries(ROOT) == []

    @pytest.mark.asyncio
    async def test_index_failure_after_blob_write_is_raised(self, sync_service, caplog):
        with patch.object(
            sync_service.index, "save", AsyncMock(side_effect=StorageFailureError("Failed to update metadata"))
        ):
            with pytest.raises(StorageFailureError, match="Failed to update metadata"):
                await sync_service.upload(KEY, b"hello")

        # Blob written without entry: reported as divergence, not hidden
        assert await sync_service.download(KEY) == b"hello"
        assert "Divergence" in caplog.text
        report = await sync_service.audit(ROOT)
        assert report.orphan_blobs == [KEY]

    @pytest.mark.asyncio
    async def test_corrupt_index_blocks_upload(self, sync_service, storage_config, tmp_path):
        path = tmp_path / "metadata" / "app1" / "root1.json"
        path.parent.mkdir(parents=True)
        path.write_text("garbage")

        with pytest.raises(IndexCorruptError):
            await sync_service.upload(KEY, b"hello")
        assert path.read_text() == "garbage"


class TestDownload:
    """Tests for SyncService.download()."""

    @pytest.mark.asyncio
    async def test_missing_blob(self, sync_service):
        with pytest.raises(BlobNotFoundError):
            await sync_service.download(KEY)


class TestDelete:
    """Tests for SyncService.delete()."""

    @pytest.mark.asyncio
    async def test_delete_removes_blob_and_entry(self, sync_service):
        await sync_service.upload(KEY, b"hello")
        await sync_service.delete(KEY)

        with pytest.raises(BlobNotFoundError):
            await sync_service.download(KEY)
        assert await sync_service.list_entries(ROOT) == []

    @pytest.mark.asyncio
    async def test_delete_twice_succeeds(self, sync_service):
        await sync_service.upload(KEY, b"hello")
        await sync_service.delete(KEY)
        await sync_service.delete(KEY)

    @pytest.mark.asyncio
    async def test_delete_never_existing_does_not_create_index(self, sync_service, tmp_path):
        await sync_service.delete(KEY)
        assert not (tmp_path / "metadata" / "app1" / "root1.json").exists()

    @pytest.mark.asyncio
    async def test_delete_prunes_device_keeps_others(self, sync_service):
        await sync_service.upload(KEY, b"a")
        await sync_service.upload(BlobKey("app1", "root1", "devB", "ev1"), b"bb")
        await sync_service.delete(KEY)

        index = await sync_service.index.load(ROOT)
        assert list(index.root) == ["devB"]
        entries = await sync_service.list_entries(ROOT)
        assert [(e.device_id, e.event_id) for e in entries] == [("devB", "ev1")]

    @pytest.mark.asyncio
    async def test_delete_removes_stale_entry_without_blob(self, sync_service, tmp_path):
        await sync_service.upload(KEY, b"hello")
        (tmp_path / "blobs" / "app1" / "root1" / "devA" / "ev1.blob").unlink()

        await sync_service.delete(KEY)
        assert await sync_service.list_entries(ROOT) == []

    @pytest.mark.asyncio
    async def test_blob_delete_failure_is_raised(self, sync_service):
        await sync_service.upload(KEY, b"hello")
        sync_service.blobs.backend = AsyncMock()
        sync_service.blobs.backend.delete_file = AsyncMock(side_effect=PermissionError("denied"))

        with pytest.raises(StorageFailureError, match="Failed to delete blob"):
            await sync_service.delete(KEY)
        assert len(await sync_service.list_entries(ROOT)) == 1


class TestListEntries:
    """Tests for SyncService.list_entries()."""

    @pytest.mark.asyncio
    async def test_filter_by_device(self, sync_service):
        await sync_service.upload(BlobKey("app1", "root1", "devA", "ev1"), b"1")
        await sync_service.upload(BlobKey("app1", "root1", "devA", "ev2"), b"22")
        await sync_service.upload(BlobKey("app1", "root1", "devB", "ev1"), b"333")

        all_entries = await sync_service.list_entries(ROOT)
        assert len(all_entries) == 3

        dev_a = await sync_service.list_entries(ROOT, "devA")
        assert {e.event_id for e in dev_a} == {"ev1", "ev2"}
        assert all(e.device_id == "devA" for e in dev_a)

    @pytest.mark.asyncio
    async def test_does_not_touch_blob_store(self, sync_service):
        await sync_service.upload(KEY, b"hello")
        sync_service.blobs.backend = AsyncMock()
        entries = await sync_service.list_entries(ROOT)
        assert len(entries) == 1
        sync_service.blobs.backend.assert_not_called()
        assert sync_service.blobs.backend.method_calls == []

    @pytest.mark.asyncio
    async def test_roots_are_isolated(self, sync_service):
        await sync_service.upload(KEY, b"hello")
        assert await sync_service.list_entries(RootKey("app1", "root2")) == []


class TestConcurrency:
    """Tests for per-root serialization."""

    @pytest.mark.asyncio
    async def test_concurrent_uploads_keep_every_entry(self, sync_service):
        keys = [BlobKey("app1", "root1", f"dev{i % 3}", f"ev{i}") for i in range(30)]
        await asyncio.gather(*(sync_service.upload(key, b"x" * i) for i, key in enumerate(keys)))

        entries = await sync_service.list_entries(ROOT)
        assert {(e.device_id, e.event_id) for e in entries} == {(k.device_id, k.event_id) for k in keys}
        assert (await sync_service.audit(ROOT)).consistent

    @pytest.mark.asyncio
    async def test_concurrent_upload_and_delete_stay_consistent(self, sync_service):
        await sync_service.upload(KEY, b"seed")
        ops = []
        for i in range(10):
            ops.append(sync_service.upload(KEY, b"v" * (i + 1)))
            ops.append(sync_service.delete(KEY))
        await asyncio.gather(*ops)

        report = await sync_service.audit(ROOT)
        assert report.consistent

    @pytest.mark.asyncio
    async def test_index_cycles_do_not_interleave(self, storage_config):
        """Load/save of one root never overlaps with another request's load/save."""
        service = SyncService.from_config(storage_config)
        active = 0
        max_active = 0
        original_load = service.index.load

        async def slow_load(root):
            nonlocal active, max_active
            active += 1
            max_active = max(max_active, active)
            await asyncio.sleep(0.01)
            index = await original_load(root)
            active -= 1
            return index

        service.index.load = slow_load
        await asyncio.gather(*(
            service.upload(BlobKey("app1", "root1", "devA", f"ev{i}"), b"x") for i in range(5)
        ))
        assert max_active == 1
        assert len(await service.list_entries(ROOT)) == 5

    @pytest.mark.asyncio
    async def test_different_roots_run_in_parallel(self, storage_config):
        service = SyncService.from_config(storage_config)
        active = 0
        max_active = 0
        original_load = service.index.load

        async def slow_load(root):
            nonlocal active, max_active
            active += 1
            max_active = max(max_active, active)
            await asyncio.sleep(0.01)
            index = await original_load(root)
            active -= 1
            return index

        service.index.load = slow_load
        await asyncio.gather(*(
            service.upload(BlobKey("app1", f"root{i}", "devA", "ev1"), b"x") for i in range(3)
        ))
        assert max_active == 3

    def test_root_locks_created_once(self):
        locks = RootLocks()
        assert locks.get(ROOT) is locks.get(RootKey("app1", "root1"))
        assert locks.get(ROOT) is not locks.get(RootKey("app1", "root2"))
        assert len(locks) == 2


class TestAudit:
    """Tests for SyncService.audit()."""

    @pytest.mark.asyncio
    async def test_consistent_root(self, sync_service):
        await sync_service.upload(KEY, b"hello")
        report = await sync_service.audit(ROOT)
        assert report.consistent
        assert report.indexed == 1
        assert report.stored == 1

    @pytest.mark.asyncio
    async def test_reports_missing_and_orphan_blobs(self, sync_service, tmp_path):
        await sync_service.upload(KEY, b"hello")
        (tmp_path / "blobs" / "app1" / "root1" / "devA" / "ev1.blob").unlink()
        orphan = tmp_path / "blobs" / "app1" / "root1" / "devB" / "ev7.blob"
        orphan.parent.mkdir(parents=True)
        orphan.write_bytes(b"x")

        report = await sync_service.audit(ROOT)
        assert not report.consistent
        assert report.missing_blobs == [KEY]
        assert report.orphan_blobs == [BlobKey("app1", "root1", "devB", "ev7")]

    @pytest.mark.asyncio
    async def test_empty_root(self, sync_service):
        report = await sync_service.audit(ROOT)
        assert report.consistent
        assert report.indexed == 0


def test_from_config_uses_local_backend():
    service = SyncService.from_config(StorageConfig(blob_root="/b", metadata_root="/m"))
    assert isinstance(service.blobs.backend, LocalStorageBackend)
    assert service.blobs.root == "/b"
    assert service.index.root == "/m"
