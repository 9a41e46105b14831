"""Document source contract consumed by the resolver and the day exporter."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Iterator, List, Optional

from daily_export.models import DayWindow, MessageRecord

__all__ = ["DocumentSource", "QueryPage"]


@dataclass
class QueryPage:
    """One page of a day-window query."""

    records: List[MessageRecord] = field(default_factory=list)
    request_charge: float = 0.0
    elapsed: float = 0.0

    def __len__(self) -> int:
        return len(self.records)


class DocumentSource(ABC):
    """Read-only access to the time-stamped records of the document store."""

    @abstractmethod
    def query_window(self, window: DayWindow, record_type: str, page_size: int) -> Iterator[QueryPage]:
        """Yield pages of records with ``window.start <= timeStamp < window.end``.

        Records are ordered by ``timeStamp`` ascending. A page the service
        refuses to return because it is too large is signalled by raising
        :class:`~daily_export.exceptions.OversizePageError` from the iterator;
        pages yielded before it stay valid.
        """

    @abstractmethod
    def min_timestamp(self, record_type: str) -> Optional[str]:
        """Return the smallest stored ``timeStamp`` for ``record_type``, or None."""

    def verify_connection(self) -> None:
        """Perform a cheap read that proves connectivity and permissions."""
