"""
Literal.club adapter.

Literal.club exposes a GraphQL API that requires a session token obtained
through the ``login`` mutation. The adapter logs in lazily on first use and
then queries the books on the user's "is reading" shelf.
"""

import logging
from typing import Any, Dict, List, Optional

import aiohttp

from .domain import ApiError, Book, LiteralError

logger = logging.getLogger(__name__)

LITERAL_GRAPHQL_URL = "https://literal.club/graphql/"
LITERAL_BOOK_URL = "https://literal.club/book/"

LOGIN_MUTATION = """
mutation login($email: String!, $password: String!) {
  login(email: $email, password: $password) {
    token
    profile {
      id
      handle
    }
  }
}"""

READING_STATE_QUERY = """
query booksByReadingStateAndProfile($limit: Int!, $offset: Int!, $readingStatus: ReadingStatus!, $profileId: String!) {
  booksByReadingStateAndProfile(limit: $limit, offset: $offset, readingStatus: $readingStatus, profileId: $profileId) {
    id
    slug
    title
    subtitle
    description
    cover
    authors {
      id
      name
    }
  }
}"""


def book_from_literal(node: Dict[str, Any]) -> Book:
    """Transform a Literal.club book node into a domain Book."""
    slug = node.get("slug") or ""
    authors = tuple(
        author["name"] for author in node.get("authors") or [] if author.get("name")
    )
    return Book(
        title=node.get("title") or "",
        url=f"{LITERAL_BOOK_URL}{slug}" if slug else "",
        image_url=node.get("cover") or "",
        authors=authors,
        description=node.get("description") or "",
    )


class LiteralClient:
    def __init__(
        self,
        email: Optional[str],
        password: Optional[str],
        api_url: str = LITERAL_GRAPHQL_URL,
        timeout: float = 30.0,
    ):
        self.email = email
        self.password = password
        self.api_url = api_url
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None
        self._token: Optional[str] = None
        self._profile_id: Optional[str] = None

    @property
    def configured(self) -> bool:
        return bool(self.email and self.password)

    async def __aenter__(self):
        self._session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.timeout)
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._session:
            await self._session.close()
            self._session = None

    async def _make_graphql_request(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        if not self._session:
            raise RuntimeError("Client must be used as async context manager")

        headers = {}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        async with self._session.post(
            self.api_url, json=payload, headers=headers
        ) as resp:
            if resp.status >= 400:
                raise ApiError(f"Literal.club request failed with status {resp.status}")
            response_data = await resp.json()

        if response_data.get("errors"):
            messages = [e.get("message", str(e)) for e in response_data["errors"]]
            raise LiteralError(f"Literal.club query failed: {messages}")
        return response_data.get("data") or {}

    async def login(self) -> str:
        """Log in and remember the session token; returns the profile id."""
        data = await self._make_graphql_request(
            {
                "query": LOGIN_MUTATION,
                "variables": {"email": self.email, "password": self.password},
            }
        )
        login = data.get("login")
        if not login or not login.get("token"):
            raise LiteralError("Literal.club login returned no token")
        profile = login.get("profile")
        if not profile or not profile.get("id"):
            raise LiteralError("Literal.club login returned no profile")

        self._token = login["token"]
        self._profile_id = profile["id"]
        logger.info(f"✅ Logged in to Literal.club as {profile.get('handle')}")
        return self._profile_id

    async def currently_reading(self, count: int) -> List[Book]:
        if self._profile_id is None:
            await self.login()

        data = await self._make_graphql_request(
            {
                "query": READING_STATE_QUERY,
                "variables": {
                    "limit": max(count, 1),
                    "offset": 0,
                    "readingStatus": "IS_READING",
                    "profileId": self._profile_id,
                },
            }
        )
        books = [
            book_from_literal(node)
            for node in data.get("booksByReadingStateAndProfile") or []
        ]
        logger.info(f"📚 Fetched {len(books)} books from Literal.club")
        return books[:count]
