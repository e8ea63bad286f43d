"""Shared fixtures: settings on tmp_path, fake bookmark service and renderer."""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import pytest

from utils.config import Settings
from utils.schemas import Bookmark

T0 = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_bookmark(n: int, when: Optional[datetime] = None) -> Bookmark:
    return Bookmark(
        url=f"https://example.com/page-{n}",
        hash=f"hash{n:04d}",
        created=when or T0 + timedelta(minutes=n),
        description=f"Page {n}",
    )


class FakeBookmarkService:
    """In-memory bookmark service; returns newest first like Pinboard."""

    def __init__(self, bookmarks: Optional[list[Bookmark]] = None) -> None:
        self.bookmarks = list(bookmarks or [])
        self.fetch_calls: list[datetime] = []
        self.lookup_calls: list[str] = []

    async def fetch_since(self, since: datetime) -> list[Bookmark]:
        self.fetch_calls.append(since)
        newer = [b for b in self.bookmarks if b.created > since]
        return sorted(newer, key=lambda b: b.created, reverse=True)

    async def lookup(self, url: str) -> Optional[Bookmark]:
        self.lookup_calls.append(url)
        for bookmark in self.bookmarks:
            if bookmark.url == url:
                return bookmark
        return None


class FakeDispatcher:
    """Records dispatched URLs; fails URLs listed in failing. Writes artifacts on success."""

    def __init__(self, output_folder: Path, failing: Optional[set[str]] = None, status: int = 1) -> None:
        self.output_folder = Path(output_folder)
        self.failing = set(failing or ())
        self.status = status
        self.calls: list[str] = []

    async def archive(self, bookmark: Bookmark) -> int:
        self.calls.append(bookmark.url)
        if bookmark.url in self.failing:
            return self.status
        (self.output_folder / f"{bookmark.hash}.pdf").write_text(bookmark.url, encoding="utf-8")
        return 0


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        TOKEN="user:0123456789ABCDEF",
        OUTPUT_FOLDER=tmp_path / "archive",
        LOG_FOLDER=tmp_path / "logs",
        INTERACTIVE_PAUSE=0,
    )
