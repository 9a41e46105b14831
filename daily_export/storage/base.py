"""Abstract base class for object store backends.

Defines the narrow key-addressed blob contract the exporter and the
watermark store depend on.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)

__all__ = ["ObjectStore", "StorageResult"]


@dataclass
class StorageResult:
    """Result of a storage write."""

    success: bool
    path: str
    bytes_written: int = 0


class ObjectStore(ABC):
    """Abstract base class for object store backends.

    Keys are ``/``-separated paths inside one container (or bucket, or base
    directory). Writes replace the whole object; there is no partial update.

    Implementations raise :class:`~daily_export.exceptions.StorageError` from
    ``write_bytes`` and ``delete`` when the operation fails, and let
    ``read_bytes`` raise ``FileNotFoundError`` for a missing key.
    """

    def __init__(self, prefix: str = "", **options: Any) -> None:
        """Initialize the object store.

        Args:
            prefix: Optional key prefix applied to every path
            **options: Backend-specific options
        """
        self.prefix = prefix.strip("/")
        self.options = options

    @property
    @abstractmethod
    def scheme(self) -> str:
        """Return the backend identifier (e.g., 'azure', 's3', 'local')."""
        pass

    @abstractmethod
    def ensure_container(self) -> None:
        """Create the container/bucket/directory if it does not exist."""
        pass

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Check if an object exists at ``key``."""
        pass

    @abstractmethod
    def read_bytes(self, key: str) -> bytes:
        """Read an object's contents."""
        pass

    @abstractmethod
    def write_bytes(
        self,
        key: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> StorageResult:
        """Write (overwrite) an object.

        Args:
            key: Object key
            data: Full object contents
            content_type: Optional MIME type recorded with the object

        Returns:
            StorageResult with operation details
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Delete an object.

        Returns:
            True if deleted, False if it did not exist
        """
        pass

    def read_text(self, key: str, encoding: str = "utf-8") -> str:
        return self.read_bytes(key).decode(encoding)

    def write_text(
        self,
        key: str,
        data: str,
        encoding: str = "utf-8",
        content_type: Optional[str] = None,
    ) -> StorageResult:
        return self.write_bytes(key, data.encode(encoding), content_type=content_type)

    def full_key(self, key: str) -> str:
        """Apply the configured prefix to a key."""
        clean = key.lstrip("/")
        return f"{self.prefix}/{clean}" if self.prefix else clean

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(prefix={self.prefix!r})"
