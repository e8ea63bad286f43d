"""
Bookmarking service client (Pinboard v1 JSON API) with retries.

Implements the two calls the archiver needs:
- fetch_since(ts): posts/all?fromdt=... (bookmarks created after ts)
- lookup(url):     posts/get?url=...     (single bookmark by URL, or None)

Transport errors, 429 and 5xx responses are retried with exponential backoff.
"""

import logging
from datetime import datetime
from typing import Any, Optional, Protocol

import httpx
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from utils.cursor import format_timestamp
from utils.schemas import Bookmark

logger = logging.getLogger(__name__)


class BookmarkService(Protocol):
    """What the pipeline needs from the bookmarking service."""

    async def fetch_since(self, since: datetime) -> list[Bookmark]: ...

    async def lookup(self, url: str) -> Optional[Bookmark]: ...


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    return False


class PinboardClient:
    """Async Pinboard API client."""

    def __init__(
        self,
        token: str,
        api_base: str = "https://api.pinboard.in/v1",
        timeout: float = 30,
        max_retries: int = 3,
        wait: Optional[wait_base] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the client.

        Args:
            token: API token ("user:HEX")
            api_base: API root URL
            timeout: Per-request timeout in seconds
            max_retries: Total attempts per request
            wait: tenacity wait strategy, defaults to exponential 1s..10s
            transport: Optional httpx transport (tests)
        """
        if not token:
            raise ValueError("API token is required")

        self._token = token
        self._api_base = api_base.rstrip("/")
        self._max_retries = max_retries
        self._wait = wait or wait_exponential(multiplier=1, min=1, max=10)
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def __aenter__(self) -> "PinboardClient":
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def _get(self, method: str, params: dict[str, str]) -> Any:
        """GET an API method and return the decoded JSON body."""
        url = f"{self._api_base}/{method}"
        query = {**params, "auth_token": self._token, "format": "json"}

        async for attempt in AsyncRetrying(
            retry=retry_if_exception(_is_retryable),
            stop=stop_after_attempt(self._max_retries),
            wait=self._wait,
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning(
                        "Retrying bookmark service call: method=%s attempt=%d/%d",
                        method,
                        attempt.retry_state.attempt_number,
                        self._max_retries,
                    )
                response = await self._client.get(url, params=query)
                response.raise_for_status()
                try:
                    return response.json()
                except ValueError as e:
                    raise httpx.DecodingError(
                        f"Malformed JSON from {method}: {e}", request=response.request
                    ) from e

    @staticmethod
    def _parse_posts(posts: list[dict[str, Any]]) -> list[Bookmark]:
        bookmarks = []
        for post in posts:
            try:
                bookmarks.append(Bookmark.model_validate(post))
            except ValidationError as e:
                logger.warning(
                    "Skipping malformed bookmark record: href=%s error=%s",
                    post.get("href") if isinstance(post, dict) else post,
                    str(e),
                )
        return bookmarks

    async def fetch_since(self, since: datetime) -> list[Bookmark]:
        """
        Fetch bookmarks created after since.

        Args:
            since: Exclusive lower bound on creation time

        Returns:
            Bookmarks in the order the service returned them (newest first for Pinboard)

        Raises:
            httpx.HTTPError: If the request fails after retries
        """
        posts = await self._get("posts/all", {"fromdt": format_timestamp(since)})
        if posts is None:
            posts = []
        if not isinstance(posts, list):
            raise httpx.DecodingError("posts/all did not return a list of posts")
        bookmarks = self._parse_posts(posts)

        # strictly after: a bookmark sitting exactly on the cursor was already dispatched
        return [b for b in bookmarks if b.created > since]

    async def lookup(self, url: str) -> Optional[Bookmark]:
        """
        Look up a single bookmark by URL.

        Returns:
            The bookmark, or None if the service has no bookmark for url

        Raises:
            httpx.HTTPError: If the request fails after retries
        """
        body = await self._get("posts/get", {"url": url})
        posts = body.get("posts") if isinstance(body, dict) else None
        if not isinstance(posts, list):
            raise httpx.DecodingError(f"posts/get returned no posts list for {url}")
        for bookmark in self._parse_posts(posts):
            if bookmark.url == url:
                return bookmark
        return None
