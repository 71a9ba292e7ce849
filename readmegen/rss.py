import calendar
import logging
import time
from datetime import datetime, timezone
from typing import List, Optional, Union

import aiohttp
import feedparser

from .domain import ZERO_TIME, ApiError, FeedEntry, FeedError

logger = logging.getLogger(__name__)


def _entry_time(entry) -> datetime:
    """Published time of a feed entry, falling back to its updated time."""
    parsed: Optional[time.struct_time] = entry.get("published_parsed") or entry.get(
        "updated_parsed"
    )
    if not parsed:
        return ZERO_TIME
    # feedparser normalizes to UTC
    return datetime.fromtimestamp(calendar.timegm(parsed), tz=timezone.utc)


def parse_feed(document: Union[str, bytes], url: str = "") -> List[FeedEntry]:
    """
    Parse an RSS/Atom document into FeedEntry records in feed order.

    feedparser is lenient and flags recoverable problems through ``bozo``;
    documents in which it detects no feed format and no entries (HTML pages,
    plain text) are rejected.
    """
    feed = feedparser.parse(document)
    if not feed.get("version") and not feed.entries:
        reason = feed.get("bozo_exception") or "no RSS or Atom feed detected"
        raise FeedError(f"Can't parse feed {url}: {reason}")

    return [
        FeedEntry(
            title=entry.get("title", ""),
            url=entry.get("link", ""),
            published_at=_entry_time(entry),
        )
        for entry in feed.entries
    ]


class RssClient:
    def __init__(self, timeout: float = 30.0):
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        self._session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.timeout)
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._session:
            await self._session.close()
            self._session = None

    async def _fetch(self, url: str) -> bytes:
        if not self._session:
            raise RuntimeError("Client must be used as async context manager")

        async with self._session.get(url) as resp:
            if resp.status >= 400:
                raise ApiError(f"Feed {url} returned status {resp.status}")
            return await resp.read()

    async def recent_entries(self, url: str, count: int) -> List[FeedEntry]:
        """First ``count`` entries of the feed at ``url``."""
        entries = parse_feed(await self._fetch(url), url)
        logger.info(f"📰 Parsed {len(entries)} entries from {url}")
        return entries[:count]
