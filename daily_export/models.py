"""Data model for the daily export: records, day windows, watermarks and run results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

__all__ = [
    "DayAction",
    "DayExportResult",
    "DayWindow",
    "ExportRun",
    "ExportRunResult",
    "MessageRecord",
    "ResolutionSource",
    "Watermark",
    "format_round_trip",
]

ONE_DAY = timedelta(days=1)

# Oldest date a persisted watermark may carry; anything at or below it is the
# serialized form of an uninitialised date and is treated as no watermark.
WATERMARK_FLOOR = date.min


def format_round_trip(value: datetime) -> str:
    """Render a UTC datetime as ``2024-01-15T00:00:00.0000000Z``.

    Seven fractional digits keep the bound lexicographically comparable with
    the ``timeStamp`` strings stored in the document store.
    """
    value = value.astimezone(timezone.utc)
    ticks = value.microsecond * 10
    return f"{value.strftime('%Y-%m-%dT%H:%M:%S')}.{ticks:07d}Z"


@dataclass(frozen=True)
class DayWindow:
    """Half-open UTC interval ``[start, start + 1 day)`` for one calendar day."""

    start: datetime
    end: datetime

    @classmethod
    def for_date(cls, day: date) -> "DayWindow":
        start = datetime.combine(day, time.min, tzinfo=timezone.utc)
        return cls(start=start, end=start + ONE_DAY)

    @property
    def day(self) -> date:
        return self.start.date()

    @property
    def start_iso(self) -> str:
        return format_round_trip(self.start)

    @property
    def end_iso(self) -> str:
        return format_round_trip(self.end)


@dataclass(frozen=True)
class MessageRecord:
    """A single exported message document."""

    id: str
    sessionId: Optional[str] = None
    timeStamp: Optional[str] = None
    sender: Optional[str] = None
    senderDisplayName: Optional[str] = None
    tokens: Optional[int] = None
    upn: Optional[str] = None
    deleted: Optional[bool] = None
    status: Optional[str] = None
    type: str = "Message"

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "MessageRecord":
        """Build a record from a query result document.

        Missing optional properties become ``None``. ``status`` is kept as the
        raw coded value rendered to text so the transform sees what the store
        holds.
        """
        status = doc.get("status")
        tokens = doc.get("tokens")
        return cls(
            id=doc.get("id", ""),
            sessionId=doc.get("sessionId"),
            timeStamp=doc.get("timeStamp"),
            sender=doc.get("sender"),
            senderDisplayName=doc.get("senderDisplayName"),
            tokens=int(tokens) if tokens is not None else None,
            upn=doc.get("upn"),
            deleted=doc.get("deleted"),
            status=None if status is None else str(status),
            type=doc.get("type") or "Message",
        )


@dataclass(frozen=True)
class Watermark:
    """The last calendar day (UTC) whose export is durably committed."""

    last_export_date_utc: date

    @property
    def is_valid(self) -> bool:
        return self.last_export_date_utc > WATERMARK_FLOOR

    def to_dict(self) -> Dict[str, Any]:
        return {"LastExportDateUtc": f"{self.last_export_date_utc.isoformat()}T00:00:00Z"}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Watermark":
        """Parse the persisted state object.

        Accepts the PascalCase key written by :meth:`to_dict` and the
        snake_case variant. The value may be a date or a full ISO timestamp;
        timestamps are normalised to their UTC date.
        """
        raw = data.get("LastExportDateUtc", data.get("last_export_date_utc"))
        if not isinstance(raw, str) or not raw.strip():
            raise ValueError(f"Missing LastExportDateUtc in state: {dict(data)!r}")
        return cls(last_export_date_utc=parse_utc_date(raw))


def parse_utc_timestamp(raw: str) -> datetime:
    """Parse an ISO-8601 timestamp, assuming UTC when no offset is present.

    Fractional seconds longer than six digits (``.1234567``) are truncated to
    microseconds. Values that fall outside the representable UTC range raise
    ``ValueError``.
    """
    text = raw.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    if "." in text:
        head, _, tail = text.partition(".")
        digits = ""
        for ch in tail:
            if not ch.isdigit():
                break
            digits += ch
        rest = tail[len(digits):]
        text = f"{head}.{(digits + '000000')[:6]}{rest}" if digits else head + rest
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc)
    except OverflowError as e:
        raise ValueError(f"Timestamp out of range: {raw!r}") from e


def parse_utc_date(raw: str) -> date:
    """Parse either ``YYYY-MM-DD`` or a full ISO timestamp into a UTC date."""
    text = raw.strip()
    if len(text) == 10:
        return date.fromisoformat(text)
    return parse_utc_timestamp(text).date()


class ResolutionSource(str, Enum):
    """Which fallback strategy produced the resume point."""

    WATERMARK = "watermark"
    PROBE = "probe"
    LOOKBACK = "lookback"


class DayAction(str, Enum):
    """What happened to a day's output file."""

    UPLOADED = "uploaded"
    DELETED = "deleted"
    SKIPPED = "skipped"


@dataclass
class DayExportResult:
    """Outcome of exporting one day window."""

    day: date
    record_count: int
    page_count: int
    request_charge: float
    truncated: bool
    action: DayAction
    object_key: str
    bytes_written: int = 0
    elapsed_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "day": self.day.isoformat(),
            "record_count": self.record_count,
            "page_count": self.page_count,
            "request_charge": round(self.request_charge, 2),
            "truncated": self.truncated,
            "action": self.action.value,
            "object_key": self.object_key,
            "bytes_written": self.bytes_written,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
        }


@dataclass(frozen=True)
class ExportRun:
    """Plan for one invocation: the historical range plus the today pass."""

    last_exported: date
    end_date: date
    today: date
    resolved_from: ResolutionSource
    include_today: bool = True

    @property
    def start_date(self) -> date:
        return self.last_exported + ONE_DAY

    @property
    def is_caught_up(self) -> bool:
        return self.start_date > self.end_date


@dataclass
class ExportRunResult:
    """Summary of a completed export run."""

    run: ExportRun
    days: List[DayExportResult] = field(default_factory=list)
    today: Optional[DayExportResult] = None
    watermark: Optional[date] = None

    @property
    def total_records(self) -> int:
        total = sum(d.record_count for d in self.days)
        if self.today is not None:
            total += self.today.record_count
        return total

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start_date": self.run.start_date.isoformat(),
            "end_date": self.run.end_date.isoformat(),
            "resolved_from": self.run.resolved_from.value,
            "days": [d.to_dict() for d in self.days],
            "today": self.today.to_dict() if self.today else None,
            "watermark": self.watermark.isoformat() if self.watermark else None,
            "total_records": self.total_records,
        }
