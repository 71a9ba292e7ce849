"""
Template facade.

``TemplateService`` owns every feature service and exposes them to Jinja2 as
a flat table of named functions. Templates are rendered in async mode, so
each function call is awaited in document order and provider requests never
overlap.
"""

import logging
from collections.abc import MutableSequence
from contextlib import AsyncExitStack
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

import humanize as humanize_lib
import jinja2

from .client import GitHubClient
from .config import Settings
from .domain import (
    Book,
    Contribution,
    FeedEntry,
    Gist,
    Issue,
    PullRequest,
    Repo,
    Review,
    Sponsor,
    Star,
    User,
)
from .goodreads import GoodreadsClient
from .literal import LiteralClient
from .rss import RssClient
from .services import GitHubService, GoodreadsService, LiteralService, RssService

logger = logging.getLogger(__name__)


def humanize(value: Any) -> str:
    """
    Render timestamps as coarse relative time.

    Timestamps are flattened to midnight first, so anything from the last day
    reads "today" and re-running the generator within a day produces the same
    output. Non-timestamps fall back to ``str``.
    """
    if isinstance(value, datetime):
        day = value.replace(hour=0, minute=0, second=0, microsecond=0)
        now = datetime.now(day.tzinfo)
        delta = now - day
        if delta <= timedelta(hours=24):
            return "today"
        return humanize_lib.naturaltime(delta)
    return f"{value}"


def reverse(sequence: Optional[MutableSequence]) -> Optional[MutableSequence]:
    """Reverse ``sequence`` in place and return it."""
    if sequence is None:
        return None
    if not isinstance(sequence, MutableSequence):
        raise TypeError(
            f"reverse expects a mutable sequence, got {type(sequence).__name__}"
        )
    sequence.reverse()
    return sequence


def now() -> datetime:
    return datetime.now().astimezone()


def contains(s: str, substr: str) -> bool:
    return substr in s


def to_lower(s: str) -> str:
    return s.lower()


def build_environment(functions: Dict[str, Callable]) -> jinja2.Environment:
    """Jinja2 environment with the template functions registered as globals."""
    env = jinja2.Environment(
        enable_async=True,
        undefined=jinja2.StrictUndefined,
        keep_trailing_newline=True,
        autoescape=False,
    )
    env.globals.update(functions)
    env.filters["humanize"] = humanize
    env.filters["toLower"] = to_lower
    return env


class TemplateService:
    """
    Template-facing API over all feature services.

    Use as an async context manager: entering opens every provider session
    and, when a GitHub token is configured, resolves the acting username.
    """

    def __init__(
        self,
        github: GitHubService,
        goodreads: GoodreadsService,
        literal: LiteralService,
        rss: RssService,
        clients: Optional[List[Any]] = None,
    ):
        self.github = github
        self.goodreads = goodreads
        self.literal = literal
        self.rss = rss
        self._clients = clients or []
        self._stack: Optional[AsyncExitStack] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "TemplateService":
        """Wire clients and services from configuration."""
        timeout = settings.request_timeout
        gh_client = GitHubClient(
            token=settings.github_token,
            api_url=settings.github_api_url,
            timeout=timeout,
        )
        gr_client = GoodreadsClient(
            token=settings.goodreads_token,
            user_id=settings.goodreads_user_id,
            base_url=settings.goodreads_api_url,
            timeout=timeout,
        )
        lit_client = LiteralClient(
            email=settings.literal_email,
            password=settings.literal_password,
            api_url=settings.literal_api_url,
            timeout=timeout,
        )
        rss_client = RssClient(timeout=timeout)

        return cls(
            github=GitHubService(gh_client),
            goodreads=GoodreadsService(gr_client),
            literal=LiteralService(lit_client),
            rss=RssService(rss_client),
            clients=[gh_client, gr_client, lit_client, rss_client],
        )

    async def __aenter__(self):
        self._stack = AsyncExitStack()
        try:
            for client in self._clients:
                await self._stack.enter_async_context(client)
            logger.debug(f"Opened {len(self._clients)} provider sessions")
            await self._resolve_username()
        except BaseException:
            await self._stack.aclose()
            raise
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._stack:
            await self._stack.aclose()
            self._stack = None

    async def _resolve_username(self):
        # Without a token there is no identity; user-scoped functions return
        # empty lists.
        if self.github.username or not self.github.client.authenticated:
            return
        self.github.username = await self.github.client.viewer_login()

    # GitHub
    async def recent_repos(self, count: int) -> List[Repo]:
        return await self.github.recent_repos(count)

    async def recent_forks(self, count: int) -> List[Repo]:
        return await self.github.recent_forks(count)

    async def repo(self, owner: str, name: str) -> Repo:
        return await self.github.repo(owner, name)

    async def followers(self, count: int) -> List[User]:
        return await self.github.followers(count)

    async def recent_pull_requests(self, count: int) -> List[PullRequest]:
        return await self.github.recent_pull_requests(count)

    async def recent_releases(self, count: int) -> List[Repo]:
        return await self.github.recent_releases(count)

    async def recent_contributions(self, count: int) -> List[Contribution]:
        return await self.github.recent_contributions(count)

    async def gists(self, count: int) -> List[Gist]:
        return await self.github.gists(count)

    async def recent_stars(self, count: int) -> List[Star]:
        return await self.github.recent_stars(count)

    async def recent_issues(self, count: int) -> List[Issue]:
        return await self.github.recent_issues(count)

    async def sponsors(self, count: int) -> List[Sponsor]:
        return await self.github.sponsors(count)

    # Goodreads
    async def goodreads_reviews(self, count: int) -> List[Review]:
        return await self.goodreads.reviews(count)

    async def goodreads_currently_reading(self, count: int) -> List[Review]:
        return await self.goodreads.currently_reading(count)

    # Literal.club
    async def literal_currently_reading(self, count: int) -> List[Book]:
        return await self.literal.currently_reading(count)

    # RSS
    async def rss_feed(self, url: str, count: int) -> List[FeedEntry]:
        return await self.rss.recent_entries(url, count)

    def functions(self) -> Dict[str, Callable]:
        """Template function table, keyed by the names used in templates."""
        return {
            # GitHub
            "recentContributions": self.recent_contributions,
            "recentPullRequests": self.recent_pull_requests,
            "recentRepos": self.recent_repos,
            "recentForks": self.recent_forks,
            "recentReleases": self.recent_releases,
            "followers": self.followers,
            "recentStars": self.recent_stars,
            "gists": self.gists,
            "recentIssues": self.recent_issues,
            "sponsors": self.sponsors,
            "repo": self.repo,
            # RSS
            "rss": self.rss_feed,
            # Goodreads
            "goodReadsReviews": self.goodreads_reviews,
            "goodReadsCurrentlyReading": self.goodreads_currently_reading,
            # Literal.club
            "literalClubCurrentlyReading": self.literal_currently_reading,
            # Utils
            "humanize": humanize,
            "reverse": reverse,
            "now": now,
            "contains": contains,
            "toLower": to_lower,
        }

    def compile(self, source: str) -> jinja2.Template:
        """Parse a template; raises ``jinja2.TemplateSyntaxError``."""
        return build_environment(self.functions()).from_string(source)
