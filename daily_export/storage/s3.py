"""S3-compatible object store using boto3.

Supports AWS S3, MinIO, and any S3-compatible object storage.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, NoReturn, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from daily_export.exceptions import AuthorizationError, StorageError
from daily_export.resilience import with_retry
from daily_export.storage.base import ObjectStore, StorageResult

logger = logging.getLogger(__name__)

__all__ = ["S3ObjectStore"]

_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}
_FORBIDDEN_CODES = {"403", "AccessDenied", "Forbidden"}


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


class S3ObjectStore(ObjectStore):
    """Object store on one S3 bucket."""

    def __init__(self, bucket: str, client: Optional[Any] = None, prefix: str = "", **options: Any) -> None:
        super().__init__(prefix, **options)
        if not bucket:
            raise ValueError("bucket is required for S3 storage")
        self.bucket = bucket
        self.client = client or boto3.client("s3", **self._client_kwargs(options))

    @staticmethod
    def _client_kwargs(options: Dict[str, Any]) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {}
        if options.get("endpoint_url"):
            kwargs["endpoint_url"] = options["endpoint_url"]
        if options.get("region"):
            kwargs["region_name"] = options["region"]
        return kwargs

    @classmethod
    def from_settings(cls, storage_cfg: Any) -> "S3ObjectStore":
        return cls(
            storage_cfg.s3_bucket,
            prefix=storage_cfg.key_prefix,
            endpoint_url=storage_cfg.s3_endpoint_url,
            region=storage_cfg.s3_region,
        )

    @property
    def scheme(self) -> str:
        return "s3"

    def _raise(self, message: str, operation: str, key: str, exc: Exception) -> NoReturn:
        logger.error("S3 %s failed [s3://%s/%s]: %s", operation, self.bucket, key, exc)
        if isinstance(exc, ClientError) and _error_code(exc) in _FORBIDDEN_CODES:
            raise AuthorizationError(
                f"Not authorized to {operation} s3://{self.bucket}/{key}",
                service="s3",
                original_error=exc,
            ) from exc
        raise StorageError(
            message,
            backend_type=self.scheme,
            operation=operation,
            remote_path=f"s3://{self.bucket}/{key}",
            original_error=exc,
        ) from exc

    @with_retry(max_attempts=3)
    def ensure_container(self) -> None:
        try:
            self.client.head_bucket(Bucket=self.bucket)
        except ClientError as exc:
            if _error_code(exc) not in _MISSING_CODES:
                self._raise("Cannot access bucket", "head", "", exc)
            logger.info("Creating S3 bucket %s", self.bucket)
            self.client.create_bucket(Bucket=self.bucket)

    def exists(self, key: str) -> bool:
        full = self.full_key(key)
        try:
            self.client.head_object(Bucket=self.bucket, Key=full)
            return True
        except ClientError as exc:
            if _error_code(exc) in _MISSING_CODES:
                return False
            raise

    def read_bytes(self, key: str) -> bytes:
        full = self.full_key(key)
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=full)
        except ClientError as exc:
            if _error_code(exc) in _MISSING_CODES:
                raise FileNotFoundError(f"s3://{self.bucket}/{full}") from exc
            raise
        return response["Body"].read()

    def write_bytes(
        self,
        key: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> StorageResult:
        full = self.full_key(key)
        kwargs: Dict[str, Any] = {"Bucket": self.bucket, "Key": full, "Body": data}
        if content_type:
            kwargs["ContentType"] = content_type
        try:
            self.client.put_object(**kwargs)
        except (BotoCoreError, ClientError) as exc:
            self._raise("Failed to upload object", "upload", full, exc)
        logger.debug("Uploaded %d bytes to s3://%s/%s", len(data), self.bucket, full)
        return StorageResult(success=True, path=f"s3://{self.bucket}/{full}", bytes_written=len(data))

    def delete(self, key: str) -> bool:
        full = self.full_key(key)
        if not self.exists(key):
            return False
        try:
            self.client.delete_object(Bucket=self.bucket, Key=full)
        except (BotoCoreError, ClientError) as exc:
            self._raise("Failed to delete object", "delete", full, exc)
        return True
