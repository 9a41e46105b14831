"""Export one UTC day window to a CSV object.

Steps for a day ``d``:

1. Query ``[d, d + 1 day)`` page by page, in ``timeStamp`` order.
2. Transform the records and render the CSV.
3. Upload the CSV over ``<prefix>/<YYYY-MM-DD>-<suffix>``, or delete a stale
   object at that key when the day has no records.

Upload and delete failures propagate; nothing here is retried.
"""

from __future__ import annotations

import logging
import time
from datetime import date
from typing import List

from daily_export.exceptions import OversizePageError, PaginationError
from daily_export.logging_config import get_logger, log_performance
from daily_export.models import DayAction, DayExportResult, DayWindow, MessageRecord
from daily_export.source.base import DocumentSource
from daily_export.storage.base import ObjectStore
from daily_export.transform import render_csv

logger = logging.getLogger(__name__)

__all__ = ["DayWindowExporter", "OVERSIZE_POLICIES", "day_object_key"]

OVERSIZE_POLICIES = ("truncate", "fail")
CSV_CONTENT_TYPE = "text/csv"
PROGRESS_PAGE_INTERVAL = 10
PROGRESS_RECORD_INTERVAL = 1000


def day_object_key(day: date, prefix: str = "cosmosdb", suffix: str = "Messages.csv") -> str:
    """Return the object key of a day's CSV, e.g. ``cosmosdb/2024-01-15-Messages.csv``."""
    name = f"{day.isoformat()}-{suffix}"
    prefix = prefix.strip("/")
    return f"{prefix}/{name}" if prefix else name


def _should_log_progress(page_number: int, total_records: int) -> bool:
    return (
        page_number == 1
        or page_number % PROGRESS_PAGE_INTERVAL == 0
        or (total_records > 0 and total_records % PROGRESS_RECORD_INTERVAL == 0)
    )


class DayWindowExporter:
    """Exports single days from a document source to an object store.

    Re-exporting a day overwrites its object, so the same source data always
    produces the same bytes.
    """

    def __init__(
        self,
        documents: DocumentSource,
        store: ObjectStore,
        prefix: str = "cosmosdb",
        file_suffix: str = "Messages.csv",
        record_type: str = "Message",
        page_size: int = 500,
        oversize_policy: str = "truncate",
    ) -> None:
        if oversize_policy not in OVERSIZE_POLICIES:
            raise ValueError(f"oversize_policy must be one of {OVERSIZE_POLICIES}, got {oversize_policy!r}")
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self.documents = documents
        self.store = store
        self.prefix = prefix
        self.file_suffix = file_suffix
        self.record_type = record_type
        self.page_size = page_size
        self.oversize_policy = oversize_policy

    def object_key(self, day: date) -> str:
        return day_object_key(day, self.prefix, self.file_suffix)

    def export_day(self, day: date) -> DayExportResult:
        window = DayWindow.for_date(day)
        key = self.object_key(day)
        started = time.perf_counter()
        log = get_logger(__name__, extra={"export_date": day.isoformat()})
        log.info("Querying records for %s (%s to %s)", day.isoformat(), window.start_iso, window.end_iso)

        records: List[MessageRecord] = []
        request_charge = 0.0
        sdk_elapsed = 0.0
        page_count = 0
        truncated = False

        pages = self.documents.query_window(window, self.record_type, self.page_size)
        try:
            for page in pages:
                page_count += 1
                records.extend(page.records)
                request_charge += page.request_charge
                sdk_elapsed += page.elapsed
                if _should_log_progress(page_count, len(records)):
                    log.info(
                        "  ... fetched page %d (%d records, RU: %.2f). Total for day: %d.",
                        page_count,
                        len(page.records),
                        page.request_charge,
                        len(records),
                    )
        except OversizePageError as exc:
            failed_page = page_count + 1
            if self.oversize_policy == "fail":
                raise PaginationError(
                    f"Query page {failed_page} for {day.isoformat()} exceeded the response size limit",
                    page=failed_page,
                    status_code=exc.status_code,
                ) from exc
            truncated = True
            log.warning(
                "Query response too large on page %d for %s; keeping %d records fetched so far. "
                "Consider reducing the page size.",
                failed_page,
                day.isoformat(),
                len(records),
            )

        query_seconds = time.perf_counter() - started
        log.info(
            "Query finished for %s: %d records, %.2f RU, %.2fs (SDK reported %.2fs)",
            day.isoformat(),
            len(records),
            request_charge,
            query_seconds,
            sdk_elapsed,
        )

        if records:
            data = render_csv(records)
            result = self.store.write_bytes(key, data, content_type=CSV_CONTENT_TYPE)
            action = DayAction.UPLOADED
            bytes_written = result.bytes_written
            log.info("Uploaded %d records (%d bytes) to %s", len(records), bytes_written, key)
        elif self.store.exists(key):
            self.store.delete(key)
            action = DayAction.DELETED
            bytes_written = 0
            log.info("No records for %s; deleted stale %s", day.isoformat(), key)
        else:
            action = DayAction.SKIPPED
            bytes_written = 0
            log.info("No records for %s; nothing to write", day.isoformat())

        elapsed = time.perf_counter() - started
        log_performance(
            logger,
            "day_export",
            duration_seconds=elapsed,
            export_date=day.isoformat(),
            records=len(records),
            pages=page_count,
            request_charge=round(request_charge, 2),
            action=action.value,
        )
        return DayExportResult(
            day=day,
            record_count=len(records),
            page_count=page_count,
            request_charge=request_charge,
            truncated=truncated,
            action=action,
            object_key=key,
            bytes_written=bytes_written,
            elapsed_seconds=elapsed,
        )
