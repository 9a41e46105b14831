"""Azure Blob Storage / ADLS Gen2 object store."""

from __future__ import annotations

import logging
from typing import Any, NoReturn, Optional

from azure.core.exceptions import (
    AzureError,
    ClientAuthenticationError,
    HttpResponseError,
    ResourceExistsError,
    ResourceNotFoundError,
)
from azure.identity import DefaultAzureCredential
from azure.storage.blob import BlobServiceClient, ContainerClient, ContentSettings, StandardBlobTier

from daily_export.exceptions import AuthorizationError, StorageError
from daily_export.resilience import with_retry
from daily_export.storage.base import ObjectStore, StorageResult

logger = logging.getLogger(__name__)

__all__ = ["AzureBlobObjectStore", "build_blob_service_client"]


def build_blob_service_client(
    account_name: Optional[str] = None,
    account_url: Optional[str] = None,
    connection_string: Optional[str] = None,
    account_key: Optional[str] = None,
    credential: Optional[Any] = None,
) -> BlobServiceClient:
    """Build the BlobServiceClient using the first available credential.

    Order: connection string, account key, explicit credential object, then
    ``DefaultAzureCredential``.
    """
    if connection_string:
        logger.debug("Azure storage using connection string")
        return BlobServiceClient.from_connection_string(connection_string)

    url = account_url or f"https://{account_name}.blob.core.windows.net"
    if account_key:
        logger.debug("Azure storage using account key for %s", url)
        return BlobServiceClient(account_url=url, credential=account_key)

    logger.debug("Azure storage using %s for %s", type(credential).__name__ if credential else "DefaultAzureCredential", url)
    return BlobServiceClient(account_url=url, credential=credential or DefaultAzureCredential())


def _is_forbidden(exc: AzureError) -> bool:
    return isinstance(exc, ClientAuthenticationError) or (
        isinstance(exc, HttpResponseError) and exc.status_code == 403
    )


class AzureBlobObjectStore(ObjectStore):
    """Object store on one Azure Blob container.

    Example:
        >>> store = AzureBlobObjectStore(container_client)
        >>> store.write_bytes("cosmosdb/2024-01-15-Messages.csv", data, content_type="text/csv")
    """

    def __init__(
        self,
        container: ContainerClient,
        prefix: str = "",
        access_tier: Optional[str] = "Cool",
        **options: Any,
    ) -> None:
        super().__init__(prefix, **options)
        self.container = container
        self.access_tier = access_tier

    @classmethod
    def from_settings(cls, storage_cfg: Any, credential: Optional[Any] = None) -> "AzureBlobObjectStore":
        """Create the store from the ``storage`` settings section."""
        service = build_blob_service_client(
            account_name=storage_cfg.account_name,
            account_url=storage_cfg.account_url,
            connection_string=storage_cfg.connection_string,
            account_key=storage_cfg.account_key,
            credential=credential,
        )
        return cls(
            service.get_container_client(storage_cfg.container_name),
            prefix=storage_cfg.key_prefix,
            access_tier=storage_cfg.access_tier,
        )

    @property
    def scheme(self) -> str:
        return "azure"

    def _raise(self, message: str, operation: str, blob_path: str, exc: AzureError) -> NoReturn:
        logger.error("Azure %s failed [%s]: %s", operation, blob_path, exc)
        if _is_forbidden(exc):
            raise AuthorizationError(
                f"Not authorized to {operation} blob '{blob_path}'",
                service="blob",
                original_error=exc,
            ) from exc
        raise StorageError(
            message,
            backend_type=self.scheme,
            operation=operation,
            remote_path=blob_path,
            original_error=exc,
        ) from exc

    @with_retry(max_attempts=3)
    def ensure_container(self) -> None:
        """Create the container as private if it does not exist yet."""
        try:
            self.container.create_container()
            logger.info("Created Blob Storage container: %s", self.container.container_name)
        except ResourceExistsError:
            logger.debug("Blob Storage container exists: %s", self.container.container_name)
        except HttpResponseError as exc:
            if _is_forbidden(exc):
                self._raise("Cannot create container", "create", self.container.container_name, exc)
            raise

    def exists(self, key: str) -> bool:
        blob_path = self.full_key(key)
        return bool(self.container.get_blob_client(blob_path).exists())

    def read_bytes(self, key: str) -> bytes:
        blob_path = self.full_key(key)
        try:
            return self.container.get_blob_client(blob_path).download_blob().readall()
        except ResourceNotFoundError as exc:
            raise FileNotFoundError(blob_path) from exc

    def write_bytes(
        self,
        key: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> StorageResult:
        blob_path = self.full_key(key)
        kwargs: dict = {"overwrite": True}
        if content_type:
            kwargs["content_settings"] = ContentSettings(content_type=content_type)
        if self.access_tier:
            kwargs["standard_blob_tier"] = StandardBlobTier(self.access_tier)
        try:
            self.container.upload_blob(blob_path, data, **kwargs)
        except AzureError as exc:
            self._raise("Failed to upload blob", "upload", blob_path, exc)
        return StorageResult(success=True, path=blob_path, bytes_written=len(data))

    def delete(self, key: str) -> bool:
        blob_path = self.full_key(key)
        try:
            self.container.delete_blob(blob_path)
            return True
        except ResourceNotFoundError:
            return False
        except AzureError as exc:
            self._raise("Failed to delete blob", "delete", blob_path, exc)
