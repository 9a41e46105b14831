"""Local filesystem object store, for development runs and tests."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

from daily_export.exceptions import StorageError
from daily_export.storage.base import ObjectStore, StorageResult

logger = logging.getLogger(__name__)

__all__ = ["LocalObjectStore"]


class LocalObjectStore(ObjectStore):
    """Object store rooted at a local directory.

    Writes go to a temporary sibling file that is renamed over the target, so a
    reader never observes a half-written object.

    Example:
        >>> store = LocalObjectStore("./out")
        >>> store.write_bytes("cosmosdb/2024-01-15-Messages.csv", b"id\\r\\n")
        >>> store.exists("cosmosdb/2024-01-15-Messages.csv")
        True
    """

    def __init__(self, base_path: str, prefix: str = "", **options: Any) -> None:
        super().__init__(prefix, **options)
        self.base_path = Path(base_path)

    @property
    def scheme(self) -> str:
        return "local"

    def _resolve_path(self, key: str) -> Path:
        return self.base_path / self.full_key(key)

    def ensure_container(self) -> None:
        self.base_path.mkdir(parents=True, exist_ok=True)

    def exists(self, key: str) -> bool:
        return self._resolve_path(key).is_file()

    def read_bytes(self, key: str) -> bytes:
        return self._resolve_path(key).read_bytes()

    def write_bytes(
        self,
        key: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> StorageResult:
        resolved = self._resolve_path(key)
        try:
            resolved.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=resolved.parent, prefix=f".{resolved.name}.")
            try:
                with os.fdopen(fd, "wb") as handle:
                    handle.write(data)
                os.replace(tmp_name, resolved)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as exc:
            logger.error("Local write failed [%s]: %s", resolved, exc)
            raise StorageError(
                "Failed to write object",
                backend_type=self.scheme,
                operation="write",
                remote_path=str(resolved),
                original_error=exc,
            ) from exc

        return StorageResult(success=True, path=str(resolved), bytes_written=len(data))

    def delete(self, key: str) -> bool:
        resolved = self._resolve_path(key)
        if not resolved.exists():
            return False
        try:
            resolved.unlink()
        except OSError as exc:
            logger.error("Local delete failed [%s]: %s", resolved, exc)
            raise StorageError(
                "Failed to delete object",
                backend_type=self.scheme,
                operation="delete",
                remote_path=str(resolved),
                original_error=exc,
            ) from exc
        return True
