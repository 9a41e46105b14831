"""Record-to-row transform for the day CSV files.

The only value rewritten on the way out is the coded ``status`` field; the
``timeStamp`` column is relabelled ``Timestamp`` and ``status`` becomes
``Status``. Everything else passes through untouched.
"""

from __future__ import annotations

import csv
import io
import re
from typing import Any, Dict, Iterable, List, Optional

from daily_export.models import MessageRecord

__all__ = ["CSV_COLUMNS", "STATUS_NAMES", "map_status", "record_to_row", "render_csv"]

STATUS_NAMES: Dict[int, str] = {
    0: "Pending",
    1: "InProgress",
    2: "Completed",
    3: "Failed",
}

# (record attribute, CSV header) in output order
CSV_COLUMNS: List[tuple] = [
    ("id", "id"),
    ("sessionId", "sessionId"),
    ("timeStamp", "Timestamp"),
    ("sender", "sender"),
    ("senderDisplayName", "senderDisplayName"),
    ("tokens", "tokens"),
    ("upn", "upn"),
    ("deleted", "deleted"),
    ("status", "Status"),
    ("type", "type"),
]

_INT32_MIN = -(2 ** 31)
_INT32_MAX = 2 ** 31 - 1
_INTEGER_PATTERN = re.compile(r"\s*[+-]?[0-9]+\s*")


def _parse_int32(value: str) -> Optional[int]:
    if not _INTEGER_PATTERN.fullmatch(value):
        return None
    number = int(value)
    if number < _INT32_MIN or number > _INT32_MAX:
        return None
    return number


def map_status(value: Any) -> str:
    """Map a coded status to its display string.

    >>> [map_status(v) for v in ("0", "1", "2", "3", "7", "abc", "")]
    ['Pending', 'InProgress', 'Completed', 'Failed', 'Unknown (7)', 'Invalid (abc)', 'Not Specified']
    """
    if value is None:
        return "Not Specified"
    if isinstance(value, bool):
        value = str(value)
    text = value if isinstance(value, str) else str(value)

    number = _parse_int32(text)
    if number is not None:
        return STATUS_NAMES.get(number, f"Unknown ({number})")
    if text == "":
        return "Not Specified"
    return f"Invalid ({text})"


def _format_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "True" if value else "False"
    return str(value)


def record_to_row(record: MessageRecord) -> List[str]:
    """Render one record as CSV cells in :data:`CSV_COLUMNS` order."""
    row = []
    for attr, _ in CSV_COLUMNS:
        value = getattr(record, attr)
        if attr == "status":
            value = map_status(value)
        row.append(_format_cell(value))
    return row


def render_csv(records: Iterable[MessageRecord]) -> bytes:
    """Serialize records to UTF-8 CSV bytes (no byte-order mark)."""
    buffer = io.StringIO(newline="")
    writer = csv.writer(buffer, lineterminator="\r\n")
    writer.writerow([header for _, header in CSV_COLUMNS])
    for record in records:
        writer.writerow(record_to_row(record))
    return buffer.getvalue().encode("utf-8")
