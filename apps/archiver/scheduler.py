"""
Archive Scheduler - Cron and On-Demand Execution

Runs the archive pipeline once (RUN_ONCE=true, the default) or on a cron
schedule with APScheduler (RUN_ONCE=false, ARCHIVE_SCHEDULE_CRON).

Usage:
    # Run once and exit
    python -m apps.archiver [--verbose] [--debug]

    # Delete logs and the retry store, then exit
    python -m apps.archiver --cleanup

    # Scheduled mode
    RUN_ONCE=false python -m apps.archiver
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import Optional, Sequence

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from pydantic import ValidationError

from apps.archiver.dispatcher import ArchivalDispatcher
from apps.archiver.pipeline import ArchivePipeline, DirectoryError, RunSummary, cleanup_stores, prepare_directories
from utils.config import Settings, get_settings
from utils.logging import setup_console_logging, setup_logging, shutdown_logging
from utils.pinboard import PinboardClient

logger = logging.getLogger(__name__)


class ArchiveScheduler:
    """
    Scheduler for periodic or on-demand archive runs.

    Handles:
    - APScheduler setup and management
    - Cron-based scheduling
    - RUN_ONCE immediate execution
    - Signal handling for graceful shutdown
    """

    def __init__(
        self,
        settings: Settings,
        run_once: bool = True,
        interactive: bool = False,
        debug: bool = False,
    ) -> None:
        """
        Initialize scheduler.

        Args:
            settings: Application settings
            run_once: If True, run the pipeline once and exit
            interactive: Operator attached, pause between archives
            debug: Dump bookmark records to the standard log
        """
        self.settings = settings
        self.run_once = run_once
        self.interactive = interactive
        self.debug = debug
        self.scheduler: AsyncIOScheduler | None = None
        self.shutdown_event = asyncio.Event()

        logger.info(
            "ArchiveScheduler initialized (run_once=%s, interactive=%s, schedule=%s)",
            run_once,
            interactive,
            settings.ARCHIVE_SCHEDULE_CRON,
            extra={
                "run_once": run_once,
                "interactive": interactive,
                "cron_schedule": settings.ARCHIVE_SCHEDULE_CRON,
            },
        )

    def build_dispatcher(self) -> ArchivalDispatcher:
        return ArchivalDispatcher(
            command=self.settings.RENDER_COMMAND,
            output_folder=self.settings.OUTPUT_FOLDER,
            archive_format=self.settings.ARCHIVE_FORMAT,
            timeout=self.settings.RENDER_TIMEOUT,
        )

    async def execute_archive(self) -> RunSummary:
        """Execute one pipeline run with fresh stores and a fresh API client."""
        logger.info("Starting archive run")

        try:
            async with PinboardClient(
                token=self.settings.TOKEN,
                api_base=self.settings.PINBOARD_API_BASE,
                timeout=self.settings.API_TIMEOUT,
                max_retries=self.settings.API_MAX_RETRIES,
            ) as client:
                pipeline = ArchivePipeline(
                    self.settings,
                    client,
                    self.build_dispatcher(),
                    interactive=self.interactive,
                    debug=self.debug,
                )
                return await pipeline.run()

        except Exception as e:
            logger.error("Archive run failed: %s", str(e), extra={"error": str(e)}, exc_info=True)
            raise

    def setup_signal_handlers(self) -> None:
        """Setup handlers for graceful shutdown on SIGINT/SIGTERM."""

        def signal_handler(signum: int, frame: object) -> None:
            logger.info(f"Received signal {signum}, initiating graceful shutdown")
            self.shutdown_event.set()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    async def start(self) -> None:
        """
        Run once, or schedule runs until a shutdown signal arrives.

        In RUN_ONCE mode Ctrl-C interrupts the run itself; progress committed
        before the interrupt is kept.
        """
        if self.run_once:
            logger.info("Running in RUN_ONCE mode")
            await self.execute_archive()
            return

        self.setup_signal_handlers()
        logger.info("Running in scheduled mode")

        self.scheduler = AsyncIOScheduler()

        # one run at a time: the cursor and ledger assume a single writer
        trigger = CronTrigger.from_crontab(self.settings.ARCHIVE_SCHEDULE_CRON)
        self.scheduler.add_job(
            self.execute_archive,
            trigger=trigger,
            id="archive_job",
            name="Periodic Bookmark Archive",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

        self.scheduler.start()
        logger.info("Scheduler started")

        job = self.scheduler.get_job("archive_job")
        next_run = getattr(job, "next_run_time", None)
        next_run_str = str(next_run) if next_run is not None else None

        logger.info(
            "Scheduled archive job (%s), next run %s",
            self.settings.ARCHIVE_SCHEDULE_CRON,
            next_run_str,
            extra={
                "schedule": self.settings.ARCHIVE_SCHEDULE_CRON,
                "next_run": next_run_str,
            },
        )

        await self.shutdown_event.wait()

        logger.info("Shutting down scheduler")
        if self.scheduler:
            self.scheduler.shutdown(wait=True)
        logger.info("Scheduler shutdown complete")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="bookmark-archiver",
        description="Archive newly created bookmarks as rendered page snapshots.",
    )
    parser.add_argument(
        "--cleanup",
        action="store_true",
        help="Delete the logs and the retry store, then exit",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Write debug output and full bookmark records to the standard log",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Show progress on the terminal",
    )
    return parser.parse_args(argv)


async def main(argv: Optional[Sequence[str]] = None, settings: Optional[Settings] = None) -> int:
    """Main entry point. Returns the process exit code."""
    args = parse_args(argv)
    setup_console_logging(verbose=args.verbose)

    if settings is None:
        try:
            settings = get_settings()
        except ValidationError as e:
            logger.critical("Invalid configuration: %s", str(e))
            return 1

    if args.cleanup:
        removed = cleanup_stores(settings)
        logger.info("Cleanup removed %d files", len(removed), extra={"console": True})
        return 0

    try:
        prepare_directories(settings)
    except DirectoryError as e:
        logger.critical(str(e))
        return 1

    setup_logging(
        settings.LOG_FOLDER,
        level=settings.LOG_LEVEL,
        format_type=settings.LOG_FORMAT,
        debug=args.debug,
        verbose=args.verbose,
    )

    scheduler = ArchiveScheduler(
        settings,
        run_once=settings.RUN_ONCE,
        interactive=settings.RUN_ONCE and sys.stdin is not None and sys.stdin.isatty(),
        debug=args.debug,
    )

    try:
        await scheduler.start()
    except Exception as e:
        logger.critical("Archiver failed: %s", str(e))
        return 1
    finally:
        shutdown_logging()

    return 0


def run() -> None:
    """Console script entry point."""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        sys.exit(130)


if __name__ == "__main__":
    run()
