"""Incremental, day-partitioned export of Cosmos DB messages to object storage.

Layout:
    daily_export.models       - records, day windows, watermark, run results
    daily_export.transform    - status mapping and CSV rendering
    daily_export.source       - document store adapters (Cosmos DB)
    daily_export.storage      - object store adapters (Azure Blob, S3, local)
    daily_export.state        - watermark persistence
    daily_export.resolver     - start date fallback chain
    daily_export.planner      - historical day range
    daily_export.exporter     - one day window to one CSV object
    daily_export.runner       - run controller
"""

__version__ = "1.0.0"

from daily_export.exceptions import (
    AuthorizationError,
    ConfigValidationError,
    DocumentStoreError,
    ExitCode,
    ExportError,
    PaginationError,
    StateManagementError,
    StorageError,
    classify_exit_code,
)
from daily_export.models import (
    DayAction,
    DayExportResult,
    DayWindow,
    ExportRun,
    ExportRunResult,
    MessageRecord,
    ResolutionSource,
    Watermark,
)

__all__ = [
    "__version__",
    "AuthorizationError",
    "ConfigValidationError",
    "DayAction",
    "DayExportResult",
    "DayWindow",
    "DocumentStoreError",
    "ExitCode",
    "ExportError",
    "ExportRun",
    "ExportRunResult",
    "MessageRecord",
    "PaginationError",
    "ResolutionSource",
    "StateManagementError",
    "StorageError",
    "Watermark",
    "classify_exit_code",
]
