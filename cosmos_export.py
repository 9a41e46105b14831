"""CLI entrypoint for cosmos-daily-export.

This file wires together:

- Settings loading and validation
- Document store and object store clients
- The export run (historical days, then today)
- Exit code classification for schedulers

Exit codes: 0 success, 1 configuration, 2 authorization, 3 unexpected,
4 document store.
"""

import sys
import argparse
import logging
import datetime as dt
from typing import List, Optional

from daily_export import __version__
from daily_export.config import ExportSettings, load_settings
from daily_export.context import build_export_context
from daily_export.exceptions import (
    AuthorizationError,
    ConfigValidationError,
    DocumentStoreError,
    ExitCode,
    classify_exit_code,
)
from daily_export.logging_config import log_exception, setup_logging
from daily_export.runner import utc_today
from daily_export.storage import list_backends

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Export Cosmos DB messages to day-partitioned CSV files in object storage",
    )
    parser.add_argument(
        "--config",
        help="Path to YAML config file (default: ./export.yaml when present)",
    )
    parser.add_argument(
        "--date",
        help="Treat this UTC date (YYYY-MM-DD) as today. Defaults to the current UTC date.",
    )
    parser.add_argument(
        "--skip-today",
        action="store_true",
        help="Do not refresh today's partial file after the historical days",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate configuration and connections and show the plan without exporting",
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        help="Only validate configuration (no connection tests)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose (DEBUG level) logging",
    )
    parser.add_argument(
        "--quiet", "-q", action="store_true", help="Suppress all output except errors"
    )
    parser.add_argument(
        "--log-format",
        choices=["human", "json", "simple"],
        default=None,
        help="Log format (default: human). Can also set via EXPORT_LOG_FORMAT env var",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"cosmos-daily-export {__version__}",
        help="Show version and exit",
    )
    parser.add_argument(
        "--list-backends",
        action="store_true",
        help="List available storage backends and exit",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.list_backends:
        print("Available storage backends:")
        for backend in list_backends():
            print(f"  - {backend}")
        return ExitCode.SUCCESS

    log_level = (
        logging.DEBUG if args.verbose else logging.ERROR if args.quiet else None
    )
    setup_logging(level=log_level, format_type=args.log_format, use_colors=True)

    return ExportOrchestrator(args).execute()


class ExportOrchestrator:
    """Encapsulates CLI workflows (validation, dry-run, export)."""

    def __init__(self, args: argparse.Namespace) -> None:
        self.args = args

    def execute(self) -> int:
        try:
            return self._run()
        except Exception as exc:
            return report_failure(exc)

    def _today_override(self) -> Optional[dt.date]:
        if not self.args.date:
            return None
        try:
            return dt.date.fromisoformat(self.args.date)
        except ValueError as exc:
            raise ConfigValidationError(
                f"--date must be YYYY-MM-DD, got {self.args.date!r}", key="--date"
            ) from exc

    def _run(self) -> int:
        today = self._today_override()
        settings = load_settings(self.args.config)
        self._describe(settings)

        if self.args.validate_only:
            logger.info("Configuration is valid")
            return ExitCode.SUCCESS

        context = build_export_context(settings, clock=(lambda: today) if today else utc_today)
        context.verify()

        if self.args.dry_run:
            run = context.controller.plan(include_today=not self.args.skip_today)
            if run.is_caught_up:
                logger.info("Dry run: no historical days pending (last exported %s)", run.last_exported)
            else:
                logger.info(
                    "Dry run: would export %s to %s (resolved from %s)",
                    run.start_date.isoformat(),
                    run.end_date.isoformat(),
                    run.resolved_from.value,
                )
            if run.include_today:
                logger.info("Dry run: would refresh today's partial file for %s", run.today.isoformat())
            return ExitCode.SUCCESS

        result = context.controller.run(include_today=not self.args.skip_today)
        logger.info(
            "Export process completed successfully: %d days, %d records, watermark %s",
            len(result.days),
            result.total_records,
            result.watermark.isoformat() if result.watermark else "unset",
            extra={"run_summary": result.to_dict()},
        )
        return ExitCode.SUCCESS

    def _describe(self, settings: ExportSettings) -> None:
        logger.info(
            "  ✓ Cosmos DB: %s / %s / %s",
            settings.cosmos.endpoint,
            settings.cosmos.database,
            settings.cosmos.container,
        )
        logger.info("  ✓ Storage backend: %s", settings.storage.backend)
        logger.info("  ✓ State object: %s", settings.export.state_key)


def report_failure(exc: BaseException) -> int:
    """Log a fatal error once, with the detail its category calls for."""
    code = classify_exit_code(exc)

    if code == ExitCode.CONFIGURATION:
        logger.error("Configuration error: %s", exc)
    elif code == ExitCode.AUTHORIZATION:
        logger.error("Authorization error: the identity running the export lacks the required permissions.")
        logger.error(AuthorizationError.GUIDANCE)
        logger.error("Details: %s", exc)
    elif code == ExitCode.DOCUMENT_STORE:
        status = getattr(exc, "status_code", None)
        sub_status = getattr(exc, "sub_status", None)
        logger.error("A Cosmos DB specific error occurred: %s (Substatus: %s)", status, sub_status)
        logger.error("Message: %s", exc)
        diagnostics = exc.diagnostics if isinstance(exc, DocumentStoreError) else None
        logger.error("--- Cosmos DB Diagnostics ---\n%s\n--- End Diagnostics ---", diagnostics or "No diagnostics available.")
    else:
        log_exception(logger, "An unexpected error occurred", exc)

    return int(code)


if __name__ == "__main__":
    sys.exit(main())
