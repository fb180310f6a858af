"""Per-root metadata index.

One JSON document per (app_id, root_id) holds every blob entry of the root,
keyed by device then event::

    {
      "devA": {
        "ev1": {"device_id": "devA", "event_id": "ev1",
                "created_at": "2026-10-19T12:00:00.000Z", "size": 5}
      }
    }

``upsert``, ``remove`` and ``iter_entries`` are pure; persistence goes
through ``MetadataIndexStore``. Callers serialize load/mutate/save per root.

Examples:
    >>> index = MetadataIndex()
    >>> index = upsert(index, BlobEntry(device_id="devA", event_id="ev1", created_at="t", size=5))
    >>> [e.size for e in iter_entries(index)]
    [5]
    >>> remove(index, "devA", "ev1").root
    {}
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from datetime import datetime, timezone

from pydantic import BaseModel, Field, RootModel, ValidationError

from gesh.errors import IndexCorruptError, StorageFailureError
from gesh.storage.backends.base import StorageBackend
from gesh.storage.naming import RootKey, metadata_path

logger = logging.getLogger(__name__)


def utc_timestamp(now: datetime | None = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a ``Z`` suffix."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class BlobEntry(BaseModel):
    """Metadata for one stored blob."""

    device_id: str
    event_id: str
    created_at: str
    size: int = Field(ge=0)


class MetadataIndex(RootModel[dict[str, dict[str, BlobEntry]]]):
    """device_id -> event_id -> BlobEntry."""

    root: dict[str, dict[str, BlobEntry]] = Field(default_factory=dict)

    def get(self, device_id: str, event_id: str) -> BlobEntry | None:
        return self.root.get(device_id, {}).get(event_id)

    def __len__(self) -> int:
        return sum(len(events) for events in self.root.values())


def upsert(index: MetadataIndex, entry: BlobEntry) -> MetadataIndex:
    """Return a copy of ``index`` with ``entry`` inserted or replaced."""
    devices = {device: dict(events) for device, events in index.root.items()}
    devices.setdefault(entry.device_id, {})[entry.event_id] = entry
    return MetadataIndex(devices)


def remove(index: MetadataIndex, device_id: str, event_id: str) -> MetadataIndex:
    """Return a copy of ``index`` without the entry, pruning an emptied device.

    Removing an absent entry returns an equal index.
    """
    devices = {device: dict(events) for device, events in index.root.items()}
    events = devices.get(device_id)
    if events is not None:
        events.pop(event_id, None)
        if not events:
            del devices[device_id]
    return MetadataIndex(devices)


def iter_entries(index: MetadataIndex, device_id: str | None = None) -> Iterator[BlobEntry]:
    """Yield entries in mapping order, optionally only those of one device."""
    for device, events in index.root.items():
        if device_id is not None and device != device_id:
            continue
        yield from events.values()


class MetadataIndexStore:
    """Loads and saves whole metadata index documents."""

    def __init__(self, root: str, backend: StorageBackend) -> None:
        self.root = root
        self.backend = backend

    def path_for(self, root: RootKey) -> str:
        return metadata_path(self.root, root)

    async def load(self, root: RootKey) -> MetadataIndex:
        """Load a root's index.

        A missing file is an empty index. A file that is not valid JSON or
        does not have the expected shape raises IndexCorruptError.
        """
        path = self.path_for(root)
        try:
            raw = await self.backend.read_text(path)
        except FileNotFoundError:
            return MetadataIndex()
        except UnicodeDecodeError as e:
            raise IndexCorruptError(path, f"not UTF-8: {e}") from e
        except OSError as e:
            raise StorageFailureError("Failed to read metadata", detail=str(e)) from e

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise IndexCorruptError(path, f"invalid JSON: {e}") from e

        try:
            index = MetadataIndex.model_validate(data)
        except ValidationError as e:
            raise IndexCorruptError(path, f"unexpected structure: {e.error_count()} error(s)") from e

        for device, events in index.root.items():
            for event, entry in events.items():
                if entry.device_id != device or entry.event_id != event:
                    raise IndexCorruptError(path, f"entry {device}/{event} does not match its key")
        return index

    async def save(self, root: RootKey, index: MetadataIndex) -> None:
        """Persist a root's index, replacing the previous document."""
        path = self.path_for(root)
        text = json.dumps(index.model_dump(), indent=2)
        try:
            await self.backend.write_text(path, text)
        except OSError as e:
            raise StorageFailureError("Failed to update metadata", detail=str(e)) from e
