"""
Archive Pipeline - Fetch, Retry and Archive

One run passes once through Init -> Retrying -> Fetching -> Archiving -> Done:

- Init:       create OUTPUT_FOLDER and LOG_FOLDER, open the retry ledger and cursor
- Retrying:   replay URLs from a ledger snapshot whose failure count is below the ceiling
- Fetching:   fetch bookmarks created after the cursor, oldest first
- Archiving:  dispatch each bookmark, record the outcome, advance the cursor
- Done:       log the run summary

Every bookmark's outcome is committed before the next one starts, so an
interrupted run loses at most the bookmark in flight.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import httpx
import orjson

from apps.archiver.dispatcher import ArchivalDispatcher
from utils.config import Settings
from utils.cursor import FetchCursor, format_timestamp
from utils.ledger import RetryLedger
from utils.pinboard import BookmarkService
from utils.schemas import Bookmark

logger = logging.getLogger(__name__)


class DirectoryError(Exception):
    """A required directory could not be created."""


@dataclass
class RunSummary:
    """Counters for one pipeline run."""

    retried: int = 0
    fetched: int = 0
    archived: int = 0
    failed: int = 0
    skipped: int = 0

    @property
    def processed(self) -> int:
        return self.archived + self.failed


def prepare_directories(settings: Settings) -> None:
    """
    Create the output and log folders if missing.

    Raises:
        DirectoryError: If either folder cannot be created
    """
    for folder in (settings.OUTPUT_FOLDER, settings.LOG_FOLDER):
        try:
            Path(folder).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DirectoryError(f"Cannot create directory {folder}: {e}") from e


def cleanup_stores(settings: Settings) -> list[Path]:
    """
    Delete the standard log, error log and retry store.

    The fetch cursor is kept. Missing files are not an error.

    Returns:
        Paths that were removed
    """
    removed = []
    for path in (settings.standard_log_path, settings.error_log_path, settings.retry_store_path):
        try:
            path.unlink()
        except FileNotFoundError:
            continue
        removed.append(path)
        logger.info("Removed %s", str(path))
    return removed


class ArchivePipeline:
    """
    Orchestrates one archival run.

    Handles:
    - Retry replay from the ledger snapshot
    - Fetching new bookmarks since the cursor
    - Sequential archiving with outcome and cursor bookkeeping
    """

    def __init__(
        self,
        settings: Settings,
        service: BookmarkService,
        dispatcher: ArchivalDispatcher,
        interactive: bool = False,
        debug: bool = False,
    ) -> None:
        """
        Initialize pipeline.

        Args:
            settings: Application settings
            service: Bookmarking service client
            dispatcher: Renderer dispatcher
            interactive: Pause after each archive so an operator can Ctrl-C
            debug: Dump every bookmark record to the standard log
        """
        self.settings = settings
        self.service = service
        self.dispatcher = dispatcher
        self.interactive = interactive
        self.debug = debug
        self.ledger: Optional[RetryLedger] = None
        self.cursor: Optional[FetchCursor] = None

    async def run(self) -> RunSummary:
        """
        Execute one full pass.

        Returns:
            Counters for this run

        Raises:
            DirectoryError: If required folders cannot be created
            CursorError: If the cursor file is corrupt
            httpx.HTTPError: If fetching new bookmarks fails after retries
        """
        start_time = time.time()
        summary = RunSummary()

        prepare_directories(self.settings)
        self.ledger = RetryLedger(self.settings.retry_store_path).open()
        self.cursor = FetchCursor(self.settings.cursor_path)

        try:
            await self.replay_failures(summary)
            batch = await self.fetch_new()
            summary.fetched = len(batch)
            await self.archive_batch(batch, summary)
        finally:
            self.ledger.close()
            self.ledger = None
            self.cursor = None

        logger.info(
            "Run complete: processed=%d (archived=%d, failed=%d, retried=%d, skipped=%d), elapsed=%.1fs",
            summary.processed, summary.archived, summary.failed,
            summary.retried, summary.skipped, time.time() - start_time,
            extra={"console": True},
        )
        return summary

    async def replay_failures(self, summary: RunSummary) -> None:
        """Retry URLs from a ledger snapshot taken once, before any replay."""
        snapshot = self.ledger.load_all()
        ceiling = self.settings.RETRY_CEILING

        logger.info("Retry ledger holds %d entries", len(snapshot))

        for url, failures in snapshot.items():
            if failures >= ceiling:
                logger.debug("Skipping %s: %d failures, ceiling %d", url, failures, ceiling)
                summary.skipped += 1
                continue

            try:
                bookmark = await self.service.lookup(url)
            except httpx.HTTPError as e:
                logger.error("Lookup failed, keeping retry entry: url=%s, error=%s", url, str(e))
                summary.skipped += 1
                continue

            if bookmark is None:
                logger.warning("No bookmark found for %s, keeping retry entry", url)
                summary.skipped += 1
                continue

            logger.info("Retrying %s (previous failures: %d)", url, failures)
            success = await self._dispatch(bookmark, summary)
            summary.retried += 1
            self.ledger.record_outcome(bookmark.url, success)

    async def fetch_new(self) -> list[Bookmark]:
        """Fetch bookmarks newer than the cursor, oldest first."""
        since = self.cursor.read()
        logger.info("Fetching bookmarks created after %s", format_timestamp(since))

        # the service answers newest first; ties keep the reversed order
        bookmarks = sorted(reversed(await self.service.fetch_since(since)), key=lambda b: b.created)

        logger.info("Fetched %d new bookmarks", len(bookmarks))
        return bookmarks

    async def archive_batch(self, batch: list[Bookmark], summary: RunSummary) -> None:
        """Archive bookmarks in order, committing each outcome and the cursor."""
        for bookmark in batch:
            success = await self._dispatch(bookmark, summary)
            self.ledger.record_outcome(bookmark.url, success)
            self.cursor.advance(bookmark.created)

            if self.interactive:
                await self.pause()

    async def pause(self) -> None:
        """Give an attached operator a window to Ctrl-C between archives."""
        if self.settings.INTERACTIVE_PAUSE > 0:
            await asyncio.sleep(self.settings.INTERACTIVE_PAUSE)

    async def _dispatch(self, bookmark: Bookmark, summary: RunSummary) -> bool:
        if self.debug:
            logger.debug(
                "Bookmark record: %s",
                orjson.dumps(bookmark.model_dump(mode="json"), option=orjson.OPT_SORT_KEYS).decode("utf-8"),
            )

        logger.info("Archiving %s (%s)", bookmark.url, bookmark.description or bookmark.hash)
        status = await self.dispatcher.archive(bookmark)

        if status == 0:
            summary.archived += 1
            return True

        logger.info("FAILED %s (status %d)", bookmark.url, status)
        summary.failed += 1
        return False
