"""Document store adapters."""

from daily_export.source.base import DocumentSource, QueryPage

__all__ = ["DocumentSource", "QueryPage"]
