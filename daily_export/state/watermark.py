"""Durable watermark for the incremental export.

The watermark is one small JSON object in the output store::

    {"LastExportDateUtc": "2024-01-15T00:00:00Z"}

Reads are soft (anything unusable means "no watermark"); writes are
fail-fast so a day is never reported as committed when it is not.
"""

from __future__ import annotations

import json
import logging
from datetime import date
from typing import Optional

from daily_export.exceptions import AuthorizationError, StateManagementError
from daily_export.models import Watermark
from daily_export.storage.base import ObjectStore

logger = logging.getLogger(__name__)

__all__ = ["WatermarkStore"]


class WatermarkStore:
    """Reads and writes the watermark object at a fixed key.

    Example:
        >>> wm_store = WatermarkStore(store, "cosmosdb/export-state.json")
        >>> wm_store.write(date(2024, 1, 15))
        >>> wm_store.read().last_export_date_utc
        datetime.date(2024, 1, 15)
    """

    def __init__(self, store: ObjectStore, key: str) -> None:
        self.store = store
        self.key = key

    def read(self) -> Optional[Watermark]:
        """Return the persisted watermark, or None when it is absent or unusable."""
        try:
            raw = self.store.read_text(self.key)
        except FileNotFoundError:
            logger.info("No watermark found at %s", self.key)
            return None
        except Exception as e:
            logger.warning("Error reading watermark at %s: %s", self.key, e)
            return None

        try:
            payload = json.loads(raw)
            if isinstance(payload, str):
                payload = {"LastExportDateUtc": payload}
            if not isinstance(payload, dict):
                raise ValueError(f"unexpected JSON type {type(payload).__name__}")
            watermark = Watermark.from_dict(payload)
        except (ValueError, OverflowError) as e:
            logger.warning("Ignoring malformed watermark at %s: %s", self.key, e)
            return None

        if not watermark.is_valid:
            logger.warning(
                "Ignoring degenerate watermark date %s at %s",
                watermark.last_export_date_utc,
                self.key,
            )
            return None

        logger.info("Loaded watermark: last exported %s", watermark.last_export_date_utc.isoformat())
        return watermark

    def write(self, day: date) -> None:
        """Persist ``day`` as the last committed export date."""
        body = json.dumps(Watermark(last_export_date_utc=day).to_dict())
        try:
            self.store.write_text(self.key, body, content_type="application/json")
        except AuthorizationError:
            raise
        except Exception as e:
            raise StateManagementError(
                f"Failed to persist watermark {day.isoformat()}",
                state_key=self.key,
                original_error=e,
            ) from e
        logger.debug("Saved watermark %s to %s", day.isoformat(), self.key)
