"""Client construction and wiring for one export invocation.

:func:`build_export_context` turns validated settings into the document source,
object store, watermark store, resolver, exporter and run controller used by
the CLI.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Optional, Tuple

from daily_export.config import ExportSettings
from daily_export.exporter import DayWindowExporter
from daily_export.resolver import StartDateResolver
from daily_export.runner import ExportRunController, utc_today
from daily_export.source.base import DocumentSource
from daily_export.state.watermark import WatermarkStore
from daily_export.storage import get_object_store
from daily_export.storage.base import ObjectStore

logger = logging.getLogger(__name__)


@dataclass
class ExportContext:
    settings: ExportSettings
    documents: DocumentSource
    store: ObjectStore
    watermarks: WatermarkStore
    resolver: StartDateResolver
    exporter: DayWindowExporter
    controller: ExportRunController

    def verify(self) -> None:
        """Ensure the output container exists and the document store is reachable."""
        self.store.ensure_container()
        logger.info("Ensured output container exists (%s backend)", self.store.scheme)
        self.documents.verify_connection()


def _needs_token_credential(settings: ExportSettings) -> bool:
    storage = settings.storage
    storage_uses_token = storage.backend == "azure" and not (storage.connection_string or storage.account_key)
    return storage_uses_token or not settings.cosmos.key


def build_clients(
    settings: ExportSettings,
    credential: Optional[Any] = None,
) -> Tuple[DocumentSource, ObjectStore]:
    """Create the document source and object store for ``settings``.

    One ``DefaultAzureCredential`` is shared by both services when neither has
    a key configured.
    """
    from daily_export.source.cosmos import CosmosDocumentSource

    if credential is None and _needs_token_credential(settings):
        from azure.identity import DefaultAzureCredential

        credential = DefaultAzureCredential()

    documents = CosmosDocumentSource.from_settings(settings.cosmos, credential=credential)
    store = get_object_store(settings.storage, credential=credential)
    return documents, store


def build_export_context(
    settings: ExportSettings,
    documents: Optional[DocumentSource] = None,
    store: Optional[ObjectStore] = None,
    clock: Callable[[], date] = utc_today,
) -> ExportContext:
    if documents is None or store is None:
        built_documents, built_store = build_clients(settings)
        documents = documents or built_documents
        store = store or built_store

    options = settings.export
    watermarks = WatermarkStore(store, options.state_key)
    resolver = StartDateResolver.default(
        watermarks,
        documents,
        record_type=options.record_type,
        lookback_years=options.lookback_years,
    )
    exporter = DayWindowExporter(
        documents,
        store,
        prefix=options.prefix,
        file_suffix=options.file_suffix,
        record_type=options.record_type,
        page_size=options.page_size,
        oversize_policy=options.oversize_policy,
    )
    controller = ExportRunController(resolver, exporter, watermarks, clock=clock)
    return ExportContext(
        settings=settings,
        documents=documents,
        store=store,
        watermarks=watermarks,
        resolver=resolver,
        exporter=exporter,
        controller=controller,
    )
