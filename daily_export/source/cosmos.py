"""Azure Cosmos DB document source."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Iterator, List, Optional

from azure.cosmos import ContainerProxy, CosmosClient
from azure.cosmos.exceptions import CosmosHttpResponseError
from azure.identity import DefaultAzureCredential

from daily_export.exceptions import AuthorizationError, DocumentStoreError, OversizePageError
from daily_export.models import DayWindow, MessageRecord
from daily_export.resilience import with_retry
from daily_export.source.base import DocumentSource, QueryPage

logger = logging.getLogger(__name__)

__all__ = ["CosmosDocumentSource", "DAY_QUERY", "MIN_TIMESTAMP_QUERY"]

DAY_QUERY = (
    "SELECT c.id, c.sessionId, c.timeStamp, c.sender, c.senderDisplayName, "
    "c.tokens, c.upn, c.deleted, c.status, c.type "
    "FROM c WHERE c.type = @type AND c.timeStamp >= @startDate AND c.timeStamp < @endDate "
    "ORDER BY c.timeStamp ASC"
)

MIN_TIMESTAMP_QUERY = "SELECT VALUE MIN(c.timeStamp) FROM c WHERE c.type = @type"

REQUEST_ENTITY_TOO_LARGE = 413
_DIAGNOSTIC_HEADERS = ("x-ms-activity-id", "x-ms-request-charge", "x-ms-substatus", "x-ms-retry-after-ms")


def _diagnostics(exc: CosmosHttpResponseError) -> str:
    headers = getattr(exc, "headers", None) or {}
    lines = [f"{name}: {headers[name]}" for name in _DIAGNOSTIC_HEADERS if name in headers]
    return "\n".join(lines) or "No diagnostics available."


def _wrap(exc: CosmosHttpResponseError, message: str) -> Exception:
    if exc.status_code == 403:
        return AuthorizationError(f"{message}: {exc.message}", service="cosmos", original_error=exc)
    return DocumentStoreError(
        f"{message}: {exc.message}",
        status_code=exc.status_code,
        sub_status=getattr(exc, "sub_status", None),
        diagnostics=_diagnostics(exc),
        original_error=exc,
    )


class CosmosDocumentSource(DocumentSource):
    """Reads Message documents from one Cosmos DB container.

    Example:
        >>> source = CosmosDocumentSource.from_settings(settings.cosmos)
        >>> source.verify_connection()
        >>> for page in source.query_window(DayWindow.for_date(day), "Message", 500):
        ...     print(len(page.records), page.request_charge)
    """

    def __init__(self, container: ContainerProxy) -> None:
        self.container = container

    @classmethod
    def from_settings(cls, cosmos_cfg: Any, credential: Optional[Any] = None) -> "CosmosDocumentSource":
        """Create the source from the ``cosmos`` settings section.

        An account key from the settings wins over the token credential.
        """
        auth = cosmos_cfg.key or credential or DefaultAzureCredential()
        client = CosmosClient(
            cosmos_cfg.endpoint,
            credential=auth,
            connection_timeout=cosmos_cfg.request_timeout_seconds,
        )
        container = client.get_database_client(cosmos_cfg.database).get_container_client(cosmos_cfg.container)
        return cls(container)

    def _last_request_charge(self) -> float:
        headers = getattr(self.container.client_connection, "last_response_headers", None) or {}
        try:
            return float(headers.get("x-ms-request-charge", 0.0))
        except (TypeError, ValueError):
            return 0.0

    @with_retry(max_attempts=3)
    def verify_connection(self) -> None:
        try:
            self.container.read()
        except CosmosHttpResponseError as exc:
            raise _wrap(exc, f"Cannot read container '{self.container.id}'") from exc
        logger.info("Connected to Cosmos DB container: %s", self.container.id)

    def min_timestamp(self, record_type: str) -> Optional[str]:
        parameters: List[Dict[str, Any]] = [{"name": "@type", "value": record_type}]
        try:
            results = list(
                self.container.query_items(
                    MIN_TIMESTAMP_QUERY,
                    parameters=parameters,
                    enable_cross_partition_query=True,
                )
            )
        except CosmosHttpResponseError as exc:
            raise _wrap(exc, "Minimum timestamp query failed") from exc

        value = next((r for r in results if r), None)
        logger.info(
            "Minimum timestamp query returned %r (RU: %.2f)",
            value,
            self._last_request_charge(),
        )
        return value if isinstance(value, str) else None

    def query_window(self, window: DayWindow, record_type: str, page_size: int) -> Iterator[QueryPage]:
        parameters: List[Dict[str, Any]] = [
            {"name": "@type", "value": record_type},
            {"name": "@startDate", "value": window.start_iso},
            {"name": "@endDate", "value": window.end_iso},
        ]
        pager = self.container.query_items(
            DAY_QUERY,
            parameters=parameters,
            enable_cross_partition_query=True,
            max_item_count=page_size,
        ).by_page()

        page_number = 0
        while True:
            page_number += 1
            started = time.perf_counter()
            try:
                page = next(pager, None)
                if page is None:
                    return
                documents = list(page)
            except CosmosHttpResponseError as exc:
                if exc.status_code == REQUEST_ENTITY_TOO_LARGE:
                    raise OversizePageError(
                        f"Query page {page_number} for {window.day.isoformat()} is too large",
                        status_code=exc.status_code,
                        sub_status=getattr(exc, "sub_status", None),
                        diagnostics=_diagnostics(exc),
                        original_error=exc,
                    ) from exc
                raise _wrap(exc, f"Query for {window.day.isoformat()} failed on page {page_number}") from exc

            yield QueryPage(
                records=[MessageRecord.from_document(doc) for doc in documents],
                request_charge=self._last_request_charge(),
                elapsed=time.perf_counter() - started,
            )
