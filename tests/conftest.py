"""Pytest configuration and fixtures."""

import sys
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from daily_export.exceptions import OversizePageError, StorageError  # noqa: E402
from daily_export.models import DayWindow, MessageRecord  # noqa: E402
from daily_export.source.base import DocumentSource, QueryPage  # noqa: E402
from daily_export.storage.local import LocalObjectStore  # noqa: E402


def message(ts: str, msg_id: Optional[str] = None, **fields: Any) -> Dict[str, Any]:
    """Build a stored Message document with a 7-digit fractional timestamp."""
    doc: Dict[str, Any] = {
        "id": msg_id or f"msg-{ts}",
        "sessionId": "session-1",
        "timeStamp": ts,
        "sender": "user",
        "senderDisplayName": "Test User",
        "tokens": 12,
        "upn": "user@example.com",
        "deleted": False,
        "status": 2,
        "type": "Message",
    }
    doc.update(fields)
    return doc


class FakeDocumentSource(DocumentSource):
    """In-memory document source that filters like the day query does."""

    def __init__(self, documents: Optional[List[Dict[str, Any]]] = None) -> None:
        self.documents: List[Dict[str, Any]] = list(documents or [])
        self.oversize_at: Dict[date, int] = {}
        self.min_timestamp_error: Optional[Exception] = None
        self.query_error: Optional[Exception] = None
        self.request_charge = 2.5
        self.queried: List[date] = []
        self.verified = False

    def add(self, *docs: Dict[str, Any]) -> None:
        self.documents.extend(docs)

    def query_window(self, window: DayWindow, record_type: str, page_size: int) -> Iterator[QueryPage]:
        self.queried.append(window.day)
        if self.query_error is not None:
            raise self.query_error
        matching = sorted(
            (
                d for d in self.documents
                if d.get("type") == record_type
                and window.start_iso <= d["timeStamp"] < window.end_iso
            ),
            key=lambda d: d["timeStamp"],
        )
        oversize_page = self.oversize_at.get(window.day)
        for number, offset in enumerate(range(0, len(matching), page_size), start=1):
            if oversize_page == number:
                raise OversizePageError("Request entity too large", status_code=413)
            chunk = matching[offset:offset + page_size]
            yield QueryPage(
                records=[MessageRecord.from_document(d) for d in chunk],
                request_charge=self.request_charge,
                elapsed=0.01,
            )

    def min_timestamp(self, record_type: str) -> Optional[str]:
        if self.min_timestamp_error is not None:
            raise self.min_timestamp_error
        stamps = [d["timeStamp"] for d in self.documents if d.get("type") == record_type]
        return min(stamps) if stamps else None

    def verify_connection(self) -> None:
        self.verified = True


class FlakyObjectStore(LocalObjectStore):
    """Local store that fails writes to chosen keys."""

    def __init__(self, base_path: str, fail_keys: Optional[List[str]] = None, **kwargs: Any) -> None:
        super().__init__(base_path, **kwargs)
        self.fail_keys = set(fail_keys or [])
        self.writes: List[str] = []

    def write_bytes(self, key, data, content_type=None):
        if key in self.fail_keys:
            raise StorageError("Injected failure", backend_type="local", operation="write", remote_path=key)
        self.writes.append(key)
        return super().write_bytes(key, data, content_type=content_type)


@pytest.fixture
def fake_source() -> FakeDocumentSource:
    return FakeDocumentSource()


@pytest.fixture
def local_store(tmp_path) -> LocalObjectStore:
    store = LocalObjectStore(str(tmp_path / "out"))
    store.ensure_container()
    return store


@pytest.fixture
def flaky_store(tmp_path) -> FlakyObjectStore:
    store = FlakyObjectStore(str(tmp_path / "out"))
    store.ensure_container()
    return store


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch, tmp_path):
    """Keep developer .env files and settings env vars out of the tests."""
    for name in (
        "CosmosDbEndpoint", "COSMOS_DB_ENDPOINT", "CosmosDbDatabase", "COSMOS_DB_DATABASE",
        "CosmosDbContainer", "COSMOS_DB_CONTAINER", "COSMOS_DB_KEY",
        "StorageAccountName", "STORAGE_ACCOUNT_NAME", "StorageContainerName",
        "STORAGE_CONTAINER_NAME", "STORAGE_BACKEND", "AZURE_STORAGE_CONNECTION_STRING",
        "S3_BUCKET", "S3_ENDPOINT_URL", "StateBlobName", "STATE_BLOB_NAME",
        "EXPORT_ENV", "EXPORT_LOG_LEVEL", "EXPORT_LOG_FORMAT", "EXPORT_LOG_FILE", "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
