"""
Feature services.

Each service wraps one adapter and applies the policies the adapter does not
know about: hiding the profile ("meta") repository, hiding private
repositories, re-sorting, and over-fetching so that filtering still leaves
enough items to fill the requested count.

Adapter errors are never caught here; a failing provider fails the template
function that called it.
"""

import logging
from typing import Iterable, List, Optional, TypeVar

from .client import GitHubClient
from .domain import (
    ZERO_TIME,
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
    meta_repo_name,
)
from .goodreads import GoodreadsClient
from .literal import LiteralClient
from .rss import RssClient

logger = logging.getLogger(__name__)

T = TypeVar("T")

SINGLE_EXCLUSION_MARGIN = 1  # only the meta repo can be dropped
ACTIVITY_MARGIN = 10  # meta repo plus any number of private repos


def _release_time(repo: Repo):
    return repo.last_release.published_at if repo.last_release else ZERO_TIME


class GitHubService:
    """GitHub features for a single user."""

    def __init__(self, client: GitHubClient, username: str = ""):
        self.client = client
        self.username = username

    @property
    def meta_repo(self) -> Optional[str]:
        return meta_repo_name(self.username) if self.username else None

    def _is_meta(self, repo: Repo) -> bool:
        return repo.name == self.meta_repo

    def _skip_user_query(self, count: int, feature: str) -> bool:
        if count <= 0:
            return True
        if not self.username:
            logger.warning(f"⚠️ No GitHub identity, skipping {feature}")
            return True
        return False

    def _visible(self, repo: Repo) -> bool:
        """Activity on the meta repo and on private repos is not shown."""
        return not self._is_meta(repo) and not repo.is_private

    @staticmethod
    def _take(items: Iterable[T], count: int) -> List[T]:
        out = []
        for item in items:
            out.append(item)
            if len(out) == count:
                break
        return out

    async def _recent_repos(self, count: int, is_fork: bool) -> List[Repo]:
        repos = await self.client.recent_repos(
            self.username, count + SINGLE_EXCLUSION_MARGIN, is_fork
        )
        return self._take((r for r in repos if not self._is_meta(r)), count)

    async def recent_repos(self, count: int) -> List[Repo]:
        """Newest non-fork repositories owned by the user."""
        if self._skip_user_query(count, "recent repositories"):
            return []
        return await self._recent_repos(count, is_fork=False)

    async def recent_forks(self, count: int) -> List[Repo]:
        """Newest forks owned by the user."""
        if self._skip_user_query(count, "recent forks"):
            return []
        return await self._recent_repos(count, is_fork=True)

    async def repo(self, owner: str, name: str) -> Repo:
        """Direct lookup; private repositories are returned as-is."""
        return await self.client.repo(owner, name)

    async def followers(self, count: int) -> List[User]:
        if self._skip_user_query(count, "followers"):
            return []
        return await self.client.followers(self.username, count)

    async def recent_pull_requests(self, count: int) -> List[PullRequest]:
        if self._skip_user_query(count, "recent pull requests"):
            return []
        prs = await self.client.recent_pull_requests(
            self.username, count + SINGLE_EXCLUSION_MARGIN
        )
        return self._take((pr for pr in prs if self._visible(pr.repo)), count)

    async def recent_releases(self, count: int) -> List[Repo]:
        """
        Repositories with their newest stable release, newest release first.

        Releases published at the same moment are ordered by star count.
        """
        if self._skip_user_query(count, "recent releases"):
            return []
        repos = await self.client.recent_releases(self.username, count)
        repos = sorted(
            repos,
            key=lambda r: (_release_time(r), r.stargazers),
            reverse=True,
        )
        return repos[:count]

    async def recent_contributions(self, count: int) -> List[Contribution]:
        if self._skip_user_query(count, "recent contributions"):
            return []
        contributions = await self.client.recent_contributions(
            self.username, count + ACTIVITY_MARGIN
        )
        visible = [c for c in contributions if self._visible(c.repo)]
        logger.debug(
            f"Kept {len(visible)}/{len(contributions)} contributions after filtering"
        )
        visible.sort(key=lambda c: c.occurred_at, reverse=True)
        return visible[:count]

    async def recent_issues(self, count: int) -> List[Issue]:
        if self._skip_user_query(count, "recent issues"):
            return []
        issues = await self.client.recent_issues(
            self.username, count + ACTIVITY_MARGIN
        )
        visible = [i for i in issues if self._visible(i.repo)]
        logger.debug(f"Kept {len(visible)}/{len(issues)} issues after filtering")
        visible.sort(key=lambda i: i.occurred_at, reverse=True)
        return visible[:count]

    async def gists(self, count: int) -> List[Gist]:
        if self._skip_user_query(count, "gists"):
            return []
        return await self.client.gists(self.username, count)

    async def recent_stars(self, count: int) -> List[Star]:
        if self._skip_user_query(count, "recent stars"):
            return []
        return await self.client.recent_stars(self.username, count)

    async def sponsors(self, count: int) -> List[Sponsor]:
        if self._skip_user_query(count, "sponsors"):
            return []
        sponsors = await self.client.sponsors(self.username, count)
        return sponsors[:count]


class GoodreadsService:
    def __init__(self, client: GoodreadsClient):
        self.client = client

    def _skip(self, count: int) -> bool:
        if count <= 0:
            return True
        if not self.client.configured:
            logger.warning("⚠️ Goodreads token or user id missing, skipping shelf")
            return True
        return False

    async def reviews(self, count: int) -> List[Review]:
        if self._skip(count):
            return []
        return await self.client.reviews(count)

    async def currently_reading(self, count: int) -> List[Review]:
        if self._skip(count):
            return []
        return await self.client.currently_reading(count)


class LiteralService:
    def __init__(self, client: LiteralClient):
        self.client = client

    async def currently_reading(self, count: int) -> List[Book]:
        if count <= 0:
            return []
        if not self.client.configured:
            logger.warning("⚠️ Literal.club credentials missing, skipping books")
            return []
        return await self.client.currently_reading(count)


class RssService:
    def __init__(self, client: RssClient):
        self.client = client

    async def recent_entries(self, url: str, count: int) -> List[FeedEntry]:
        if count <= 0:
            return []
        return await self.client.recent_entries(url, count)
