"""Custom exception classes for cosmos-daily-export.

Every fatal failure of an export run surfaces as one of these types (or as a
raw SDK error that :func:`classify_exit_code` knows how to map), so the CLI can
exit with a status that schedulers can branch on.
"""

from enum import IntEnum
from typing import Any, Dict, Optional


class ExitCode(IntEnum):
    """Process exit codes for the export CLI."""

    SUCCESS = 0
    CONFIGURATION = 1
    AUTHORIZATION = 2
    UNEXPECTED = 3
    DOCUMENT_STORE = 4


class ExportError(Exception):
    """Base exception for all cosmos-daily-export errors."""

    error_code: str = "ERR000"
    exit_code: ExitCode = ExitCode.UNEXPECTED

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, error_code: Optional[str] = None):
        """
        Initialize export exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional context
            error_code: Optional error code override
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code

    def __str__(self) -> str:
        parts = [f"[{self.error_code}] {self.message}"]
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            parts.append(f"({detail_str})")
        return " ".join(parts)


class ConfigValidationError(ExportError):
    """Raised when required settings are missing or invalid.

    Always raised before any network activity takes place.
    """

    error_code = "CFG001"
    exit_code = ExitCode.CONFIGURATION

    def __init__(self, message: str, config_path: Optional[str] = None, key: Optional[str] = None):
        details = {}
        if config_path:
            details['config_path'] = config_path
        if key:
            details['config_key'] = key
        super().__init__(message, details)


class StorageError(ExportError):
    """Raised when an object store write or delete fails.

    Examples:
        - Blob upload of a day's CSV failed
        - Deleting a stale day file failed
        - Container could not be created
    """

    error_code = "STG001"

    def __init__(
        self,
        message: str,
        backend_type: Optional[str] = None,
        operation: Optional[str] = None,
        remote_path: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if backend_type:
            details['backend_type'] = backend_type
        if operation:
            details['operation'] = operation
        if remote_path:
            details['remote_path'] = remote_path
        if original_error:
            details['original_error'] = str(original_error)
            details['error_type'] = type(original_error).__name__

        super().__init__(message, details)
        self.original_error = original_error


class StateManagementError(ExportError):
    """Raised when the watermark cannot be persisted."""

    error_code = "STATE001"

    def __init__(
        self,
        message: str,
        state_key: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if state_key:
            details['state_key'] = state_key
        if original_error:
            details['original_error'] = str(original_error)
            details['error_type'] = type(original_error).__name__

        super().__init__(message, details)
        self.original_error = original_error


class DocumentStoreError(ExportError):
    """Raised when the document store reports an operational failure.

    Carries the HTTP status, sub-status and diagnostics of the failed request
    when they are available.
    """

    error_code = "COSMOS001"
    exit_code = ExitCode.DOCUMENT_STORE

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        sub_status: Optional[int] = None,
        diagnostics: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details: Dict[str, Any] = {}
        if status_code is not None:
            details['status_code'] = status_code
        if sub_status is not None:
            details['sub_status'] = sub_status

        super().__init__(message, details)
        self.status_code = status_code
        self.sub_status = sub_status
        self.diagnostics = diagnostics
        self.original_error = original_error


class PaginationError(DocumentStoreError):
    """Raised when a query page cannot be consumed.

    Used for oversize pages when the export is configured to fail instead of
    truncating the day.
    """

    error_code = "PAGE001"

    def __init__(self, message: str, page: Optional[int] = None, status_code: Optional[int] = None):
        super().__init__(message, status_code=status_code)
        if page is not None:
            self.details['page'] = page


class OversizePageError(DocumentStoreError):
    """Signals that a single response page exceeded the service size limit.

    Raised by :class:`~daily_export.source.base.DocumentSource` iterators and
    handled by the day exporter according to the oversize policy.
    """

    error_code = "PAGE413"


class AuthorizationError(ExportError):
    """Raised when the running identity lacks permissions on a backing service."""

    error_code = "AUTH001"
    exit_code = ExitCode.AUTHORIZATION

    GUIDANCE = (
        "Check the role assignments of the identity running the export on both "
        "the Cosmos DB account/database and the Storage Account/container."
    )

    def __init__(self, message: str, service: Optional[str] = None, original_error: Optional[Exception] = None):
        details = {}
        if service:
            details['service'] = service
        super().__init__(message, details)
        self.service = service
        self.original_error = original_error


def _status_of(exc: BaseException) -> Optional[int]:
    status = getattr(exc, "status_code", None)
    if status is None:
        status = getattr(exc, "status", None)
    if status is None:
        response = getattr(exc, "response", None)
        if isinstance(response, dict):
            status = response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def classify_exit_code(exc: BaseException) -> ExitCode:
    """Map any exception raised by an export run to a process exit code.

    Domain exceptions carry their own exit code. Raw SDK exceptions are mapped
    by type and HTTP status so that an unwrapped error from either backing
    service still produces the right code.
    """
    if isinstance(exc, ExportError):
        if _status_of(exc) == 403 and isinstance(exc, DocumentStoreError):
            return ExitCode.AUTHORIZATION
        return exc.exit_code

    from azure.core.exceptions import ClientAuthenticationError
    from azure.cosmos.exceptions import CosmosHttpResponseError

    if isinstance(exc, ClientAuthenticationError) or _status_of(exc) == 403:
        return ExitCode.AUTHORIZATION
    if isinstance(exc, CosmosHttpResponseError):
        return ExitCode.DOCUMENT_STORE
    return ExitCode.UNEXPECTED
