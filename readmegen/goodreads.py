"""
Goodreads adapter.

Reads a user's shelves through the ``/review/list`` XML endpoint and maps
every ``<review>`` element into a ``Review`` domain record.
"""

import logging
import xml.etree.ElementTree as ET
from datetime import datetime
from typing import Dict, List, Optional

import aiohttp
from dateutil import parser as date_parser

from .domain import ZERO_TIME, ApiError, AuthenticationError, Book, ParseError, Review

logger = logging.getLogger(__name__)

GOODREADS_URL = "https://www.goodreads.com"

READ_SHELF = "read"
CURRENTLY_READING_SHELF = "currently-reading"


def _text(element: Optional[ET.Element], path: str) -> str:
    if element is None:
        return ""
    found = element.find(path)
    if found is None or found.text is None:
        return ""
    return found.text.strip()


def parse_goodreads_datetime(value: str) -> datetime:
    """
    Parse Goodreads timestamps such as ``Tue Jan 02 09:41:51 -0800 2024``.

    Empty values map to ZERO_TIME.
    """
    if not value:
        return ZERO_TIME
    try:
        return date_parser.parse(value)
    except (ValueError, OverflowError) as e:
        raise ParseError(f"Invalid Goodreads timestamp {value!r}: {e}") from e


def review_from_xml(element: ET.Element) -> Review:
    """Transform a ``<review>`` element into a domain Review."""
    book = element.find("book")
    authors = tuple(
        name
        for name in (
            _text(author, "name")
            for author in (book.findall("authors/author") if book is not None else [])
        )
        if name
    )
    rating = _text(element, "rating")

    return Review(
        book=Book(
            title=_text(book, "title"),
            url=_text(book, "link"),
            image_url=_text(book, "image_url"),
            authors=authors,
            description=_text(book, "description"),
        ),
        rating=int(rating) if rating.isdigit() else 0,
        started_at=parse_goodreads_datetime(_text(element, "started_at")),
        read_at=parse_goodreads_datetime(_text(element, "read_at")),
        updated_at=parse_goodreads_datetime(_text(element, "date_updated")),
    )


def parse_review_list(document: str) -> List[Review]:
    try:
        root = ET.fromstring(document)
    except ET.ParseError as e:
        raise ParseError(f"Invalid Goodreads response: {e}") from e
    return [review_from_xml(element) for element in root.iter("review")]


class GoodreadsClient:
    """Goodreads shelf adapter; one request per call, no pagination."""

    def __init__(
        self,
        token: Optional[str],
        user_id: Optional[str],
        base_url: str = GOODREADS_URL,
        timeout: float = 30.0,
    ):
        self.token = token
        self.user_id = user_id
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def configured(self) -> bool:
        return bool(self.token and self.user_id)

    async def __aenter__(self):
        self._session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.timeout)
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._session:
            await self._session.close()
            self._session = None

    async def _fetch(self, params: Dict[str, str]) -> str:
        if not self._session:
            raise RuntimeError("Client must be used as async context manager")

        url = f"{self.base_url}/review/list/{self.user_id}.xml"
        async with self._session.get(url, params=params) as resp:
            if resp.status == 401:
                raise AuthenticationError("Goodreads API authentication failed")
            if resp.status >= 400:
                raise ApiError(f"Goodreads request failed with status {resp.status}")
            return await resp.text()

    async def review_list(
        self, shelf: str, sort: str, count: int, order: str = "d"
    ) -> List[Review]:
        params = {
            "v": "2",
            "key": self.token or "",
            "shelf": shelf,
            "sort": sort,
            "order": order,
            "page": "1",
            "per_page": str(count),
        }
        reviews = parse_review_list(await self._fetch(params))
        logger.info(f"📚 Fetched {len(reviews)} reviews from shelf {shelf!r}")
        return reviews[:count]

    async def reviews(self, count: int) -> List[Review]:
        """Finished books, most recently read first."""
        return await self.review_list(READ_SHELF, "date_read", count)

    async def currently_reading(self, count: int) -> List[Review]:
        """Books in progress, most recently updated first."""
        return await self.review_list(CURRENTLY_READING_SHELF, "date_updated", count)
