"""Export run controller.

Owns the watermark: it is advanced only after a historical day's object has
been written (or removed), one day at a time, and is never touched for today.
A failure anywhere aborts the run and leaves the watermark at the last
committed day, so the next run resumes from there.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Callable, List, Optional

from daily_export.exporter import DayWindowExporter
from daily_export.models import DayExportResult, ExportRun, ExportRunResult, ResolutionSource
from daily_export.planner import end_of_history, plan_days
from daily_export.resolver import StartDateResolver
from daily_export.state.watermark import WatermarkStore

logger = logging.getLogger(__name__)

__all__ = ["ExportRunController", "utc_today"]


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


class ExportRunController:
    """Drives one export invocation.

    Example:
        >>> controller = ExportRunController(resolver, exporter, watermarks)
        >>> result = controller.run()
        >>> result.watermark
        datetime.date(2024, 1, 15)
    """

    def __init__(
        self,
        resolver: StartDateResolver,
        exporter: DayWindowExporter,
        watermarks: WatermarkStore,
        clock: Callable[[], date] = utc_today,
    ) -> None:
        self.resolver = resolver
        self.exporter = exporter
        self.watermarks = watermarks
        self.clock = clock

    def plan(self, today: Optional[date] = None, include_today: bool = True) -> ExportRun:
        """Resolve the resume point and describe the run without exporting."""
        today = today or self.clock()
        last_exported, source = self.resolver.resolve(today)
        return ExportRun(
            last_exported=last_exported,
            end_date=end_of_history(today),
            today=today,
            resolved_from=source,
            include_today=include_today,
        )

    def run(self, today: Optional[date] = None, include_today: bool = True) -> ExportRunResult:
        """Export every pending historical day, then refresh today."""
        run = self.plan(today, include_today)
        result = ExportRunResult(run=run)

        result.days = self.run_history(run)
        if result.days:
            result.watermark = result.days[-1].day
        elif run.resolved_from is ResolutionSource.WATERMARK:
            result.watermark = run.last_exported

        if run.include_today:
            result.today = self.refresh_today(run.today)
            logger.info(
                "Finished today's partial export for %s; watermark remains at %s",
                run.today.isoformat(),
                result.watermark.isoformat() if result.watermark else "unset",
            )
        else:
            logger.info("Skipping today's partial export")

        logger.info(
            "Export completed: %d historical days, %d records",
            len(result.days),
            result.total_records,
        )
        return result

    def run_history(self, run: ExportRun) -> List[DayExportResult]:
        """Export the planned historical days, committing the watermark after each."""
        days = plan_days(run.last_exported, run.today)
        if not days:
            logger.info(
                "Data is already up to date (processed up to %s). No new days to process.",
                run.last_exported.isoformat(),
            )
            return []

        logger.info(
            "Starting export from %s up to %s (%d days, resolved from %s)",
            days[0].isoformat(),
            days[-1].isoformat(),
            len(days),
            run.resolved_from.value,
        )
        results: List[DayExportResult] = []
        for day in days:
            results.append(self.exporter.export_day(day))
            self.watermarks.write(day)
            logger.info("Successfully processed and updated state for %s", day.isoformat())
        return results

    def refresh_today(self, today: Optional[date] = None) -> DayExportResult:
        """Re-export the still-filling current day. The watermark is not updated."""
        today = today or self.clock()
        logger.info("Processing today's data (%s); it will be overwritten on the next run", today.isoformat())
        return self.exporter.export_day(today)
