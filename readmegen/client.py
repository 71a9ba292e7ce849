import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional

import aiohttp

from .domain import (
    ZERO_TIME,
    ApiError,
    AuthenticationError,
    Contribution,
    Gist,
    Issue,
    PullRequest,
    PullRequestState,
    QueryError,
    RateLimitError,
    Release,
    Repo,
    Sponsor,
    Star,
    User,
    is_zero_time,
)
from .models import QLRelease, QLRepository, QLUser, QLUserActivity

logger = logging.getLogger(__name__)

GITHUB_GRAPHQL_URL = "https://api.github.com/graphql"
MAX_PAGE_SIZE = 100  # GitHub GraphQL API max is 100 per request

RELEASE_FIELDS = """
    name
    tagName
    publishedAt
    url
    isPrerelease
    isDraft
"""

REPOSITORY_FRAGMENT = f"""
fragment RepositoryFields on Repository {{
  nameWithOwner
  url
  description
  isPrivate
  pushedAt
  stargazers {{
    totalCount
  }}
  releases(last: 1) {{
    nodes {{{RELEASE_FIELDS}}}
  }}
}}"""

VIEWER_QUERY = """
query {
  viewer {
    login
  }
}"""

RECENT_REPOS_QUERY = (
    """
query ($username: String!, $count: Int!, $isFork: Boolean) {
  user(login: $username) {
    login
    repositories(first: $count, privacy: PUBLIC, isFork: $isFork, ownerAffiliations: OWNER, orderBy: {field: CREATED_AT, direction: DESC}) {
      totalCount
      edges {
        cursor
        node {
          ...RepositoryFields
        }
      }
    }
  }
}"""
    + REPOSITORY_FRAGMENT
)

REPO_QUERY = (
    """
query ($owner: String!, $name: String!) {
  repository(owner: $owner, name: $name) {
    ...RepositoryFields
  }
}"""
    + REPOSITORY_FRAGMENT
)

FOLLOWERS_QUERY = """
query ($username: String!, $count: Int!) {
  user(login: $username) {
    login
    followers(first: $count) {
      totalCount
      edges {
        cursor
        node {
          login
          name
          avatarUrl
          url
        }
      }
    }
  }
}"""

RECENT_PULL_REQUESTS_QUERY = (
    """
query ($username: String!, $count: Int!) {
  user(login: $username) {
    login
    pullRequests(first: $count, orderBy: {field: CREATED_AT, direction: DESC}) {
      totalCount
      edges {
        cursor
        node {
          url
          title
          state
          createdAt
          repository {
            ...RepositoryFields
          }
        }
      }
    }
  }
}"""
    + REPOSITORY_FRAGMENT
)

RECENT_RELEASES_QUERY = (
    f"""
query ($username: String!, $after: String) {{
  user(login: $username) {{
    login
    repositoriesContributedTo(first: {MAX_PAGE_SIZE}, after: $after, includeUserRepositories: true, contributionTypes: COMMIT, privacy: PUBLIC, orderBy: {{field: PUSHED_AT, direction: DESC}}) {{
      totalCount
      pageInfo {{
        endCursor
        hasNextPage
      }}
      edges {{
        cursor
        node {{
          ...RepositoryFields
          recentReleases: releases(first: 10, orderBy: {{field: CREATED_AT, direction: DESC}}) {{
            nodes {{{RELEASE_FIELDS}}}
          }}
        }}
      }}
    }}
  }}
}}"""
    + REPOSITORY_FRAGMENT
)

RECENT_CONTRIBUTIONS_QUERY = (
    """
query ($username: String!, $count: Int!) {
  user(login: $username) {
    login
    repositoriesContributedTo(first: $count, includeUserRepositories: true, contributionTypes: COMMIT, orderBy: {field: PUSHED_AT, direction: DESC}) {
      totalCount
      edges {
        cursor
        node {
          ...RepositoryFields
        }
      }
    }
  }
}"""
    + REPOSITORY_FRAGMENT
)

RECENT_ISSUES_QUERY = (
    """
query ($username: String!) {
  user(login: $username) {
    login
    contributionsCollection {
      issueContributionsByRepository(maxRepositories: 100) {
        contributions(first: 1) {
          edges {
            cursor
            node {
              occurredAt
              issue {
                title
              }
            }
          }
        }
        repository {
          ...RepositoryFields
        }
      }
    }
  }
}"""
    + REPOSITORY_FRAGMENT
)

SPONSORS_QUERY = """
query ($username: String!, $count: Int!) {
  user(login: $username) {
    login
    sponsorshipsAsMaintainer(first: $count, orderBy: {field: CREATED_AT, direction: DESC}) {
      totalCount
      edges {
        cursor
        node {
          createdAt
          sponsorEntity {
            __typename
            ... on User {
              login
              name
              avatarUrl
              url
            }
            ... on Organization {
              login
              name
              avatarUrl
              url
            }
          }
        }
      }
    }
  }
}"""

GISTS_QUERY = """
query ($username: String!, $count: Int!) {
  user(login: $username) {
    login
    gists(first: $count, orderBy: {field: CREATED_AT, direction: DESC}) {
      totalCount
      edges {
        cursor
        node {
          name
          description
          url
          createdAt
        }
      }
    }
  }
}"""

RECENT_STARS_QUERY = (
    """
query ($username: String!, $count: Int!, $after: String) {
  user(login: $username) {
    login
    starredRepositories(first: $count, after: $after, orderBy: {field: STARRED_AT, direction: DESC}) {
      totalCount
      pageInfo {
        endCursor
        hasNextPage
      }
      edges {
        cursor
        starredAt
        node {
          ...RepositoryFields
        }
      }
    }
  }
}"""
    + REPOSITORY_FRAGMENT
)

SPONSOR_TYPES = {"User", "Organization"}


def _page_size(count: int) -> int:
    return max(1, min(count, MAX_PAGE_SIZE))


def release_from_ql(release: QLRelease) -> Release:
    return Release(
        name=release.name or "",
        tag_name=release.tag_name or "",
        published_at=release.published_at or ZERO_TIME,
        url=release.url or "",
    )


def repo_from_ql(repo: QLRepository) -> Repo:
    """
    Transform a GraphQL repository node into a domain Repo.

    The last node of ``releases(last: 1)`` becomes ``last_release``; a
    repository without releases keeps ``last_release=None``.
    """
    last_release = None
    if repo.releases.nodes:
        last_release = release_from_ql(repo.releases.nodes[-1])

    return Repo(
        name=repo.name_with_owner,
        url=repo.url or "",
        description=repo.description or "",
        stargazers=repo.stargazers.total_count,
        is_private=repo.is_private,
        last_release=last_release,
    )


def user_from_ql(user: QLUser) -> User:
    return User(
        login=user.login,
        name=user.name or "",
        avatar_url=user.avatar_url or "",
        url=user.url or "",
    )


def first_stable_release(repo: QLRepository) -> Optional[Release]:
    """
    Pick the newest release that is published, tagged and not a draft or
    prerelease. ``recent_releases`` is ordered newest first.
    """
    for rel in repo.recent_releases.nodes:
        if rel.is_draft or rel.is_prerelease:
            continue
        if not rel.tag_name or is_zero_time(rel.published_at):
            continue
        return release_from_ql(rel)
    return None


class GitHubClient:
    """
    GitHub GraphQL v4 adapter.

    Issues the queries behind every GitHub template function and maps the
    nested response shapes into ``readmegen.domain`` records. The client must
    be used as an async context manager; it owns a single aiohttp session.

    Without a token the client runs anonymously. GitHub rejects most
    anonymous GraphQL calls, so callers are expected to skip user-scoped
    queries when no identity is known.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        api_url: str = GITHUB_GRAPHQL_URL,
        timeout: float = 30.0,
    ):
        self.graphql_url = api_url
        self.headers = {
            "Accept": "application/vnd.github.v4+json",
            "User-Agent": "readmegen/1.0",
        }
        if token:
            self.headers["Authorization"] = f"Bearer {token}"
        self.authenticated = bool(token)
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None
        mode = "authenticated" if self.authenticated else "anonymous"
        logger.debug(f"GitHub client initialized ({mode})")

    async def __aenter__(self):
        """Async context manager entry."""
        self._session = aiohttp.ClientSession(
            headers=self.headers,
            timeout=aiohttp.ClientTimeout(total=self.timeout),
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        if self._session:
            await self._session.close()
            self._session = None

    async def _make_graphql_request(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Make a single GraphQL request.

        Any failure is raised; there is no retry and no partial result.
        GraphQL ``errors`` fail the request even when ``data`` is present.
        """
        if not self._session:
            raise RuntimeError("Client must be used as async context manager")

        async with self._session.post(self.graphql_url, json=payload) as resp:
            if resp.status == 401:
                raise AuthenticationError("GitHub API authentication failed")

            if resp.status == 403:
                response_text = await resp.text()
                if "rate limit" in response_text.lower():
                    raise RateLimitError("GitHub API rate limit exceeded")

            resp.raise_for_status()
            response_data = await resp.json()

        errors = response_data.get("errors")
        if errors:
            for error in errors:
                error_type = str(error.get("type", ""))
                if error_type == "FORBIDDEN" or "Unauthorized" in str(error):
                    raise AuthenticationError(f"Authentication failed: {error}")
                if error_type == "RATE_LIMITED":
                    raise RateLimitError(f"GraphQL rate limited: {error}")
            messages = [error.get("message", str(error)) for error in errors]
            raise QueryError(f"GraphQL query failed: {messages}")

        if not response_data.get("data"):
            raise ApiError(f"No data in GraphQL response: {response_data}")

        return response_data["data"]

    async def _query_user(
        self, query: str, variables: Dict[str, Any]
    ) -> QLUserActivity:
        data = await self._make_graphql_request(
            {"query": query, "variables": variables}
        )
        if data.get("user") is None:
            raise QueryError(f"Could not resolve user {variables.get('username')!r}")
        return QLUserActivity.model_validate(data["user"])

    async def viewer_login(self) -> str:
        """Return the login of the authenticated user."""
        data = await self._make_graphql_request({"query": VIEWER_QUERY})
        login = data["viewer"]["login"]
        logger.info(f"✅ Authenticated as: {login}")
        return login

    async def recent_repos(
        self, username: str, count: int, is_fork: bool
    ) -> List[Repo]:
        """Owned public repositories, newest first."""
        user = await self._query_user(
            RECENT_REPOS_QUERY,
            {"username": username, "count": _page_size(count), "isFork": is_fork},
        )
        repos = [repo_from_ql(edge.node) for edge in user.repositories.edges]
        kind = "forks" if is_fork else "repositories"
        logger.info(f"🔍 Fetched {len(repos)} {kind} for {username}")
        return repos[:count]

    async def repo(self, owner: str, name: str) -> Repo:
        data = await self._make_graphql_request(
            {"query": REPO_QUERY, "variables": {"owner": owner, "name": name}}
        )
        if data.get("repository") is None:
            raise QueryError(f"Repository {owner}/{name} not found")
        return repo_from_ql(QLRepository.model_validate(data["repository"]))

    async def followers(self, username: str, count: int) -> List[User]:
        user = await self._query_user(
            FOLLOWERS_QUERY, {"username": username, "count": _page_size(count)}
        )
        followers = [user_from_ql(edge.node) for edge in user.followers.edges]
        logger.info(f"🔍 Fetched {len(followers)} followers for {username}")
        return followers[:count]

    async def recent_pull_requests(
        self, username: str, count: int
    ) -> List[PullRequest]:
        """Pull requests authored by the user, newest first."""
        user = await self._query_user(
            RECENT_PULL_REQUESTS_QUERY,
            {"username": username, "count": _page_size(count)},
        )
        prs = []
        for edge in user.pull_requests.edges:
            pr = edge.node
            prs.append(
                PullRequest(
                    title=pr.title,
                    url=pr.url,
                    state=PullRequestState(pr.state),
                    created_at=pr.created_at or ZERO_TIME,
                    repo=repo_from_ql(pr.repository),
                )
            )
            if len(prs) >= count:
                break
        logger.info(f"🔍 Fetched {len(prs)} pull requests for {username}")
        return prs

    async def recent_releases(self, username: str, count: int) -> List[Repo]:
        """
        Repositories the user committed to, each with its newest stable
        release.

        Pages through ``repositoriesContributedTo`` until ``count`` qualifying
        repositories are found or GitHub runs out of pages. A page without a
        single qualifying release still moves the cursor forward.
        """
        after_cursor: Optional[str] = None
        out: List[Repo] = []
        pages_processed = 0

        while len(out) < count:
            page_cursor = after_cursor
            user = await self._query_user(
                RECENT_RELEASES_QUERY, {"username": username, "after": after_cursor}
            )
            connection = user.repositories_contributed_to
            if not connection.edges:
                break

            for edge in connection.edges:
                release = first_stable_release(edge.node)
                if release is not None:
                    out.append(replace(repo_from_ql(edge.node), last_release=release))
                after_cursor = edge.cursor or after_cursor
                if len(out) >= count:
                    break

            pages_processed += 1
            logger.debug(
                f"📄 Page {pages_processed}: "
                f"{len(out)} repositories with releases so far"
            )

            if not connection.page_info.has_next_page:
                break
            after_cursor = connection.page_info.end_cursor or after_cursor
            if after_cursor == page_cursor:
                logger.warning("⚠️ Release scan cursor did not advance, stopping")
                break

        logger.info(f"🔍 Found {len(out)} releases for {username}")
        return out

    async def recent_contributions(
        self, username: str, count: int
    ) -> List[Contribution]:
        """Repositories the user pushed to, most recently pushed first."""
        user = await self._query_user(
            RECENT_CONTRIBUTIONS_QUERY,
            {"username": username, "count": _page_size(count)},
        )
        out = []
        for edge in user.repositories_contributed_to.edges:
            out.append(
                Contribution(
                    occurred_at=edge.node.pushed_at or ZERO_TIME,
                    repo=repo_from_ql(edge.node),
                )
            )
            if len(out) >= count:
                break
        logger.info(f"🔍 Fetched {len(out)} contributions for {username}")
        return out

    async def recent_issues(self, username: str, count: int) -> List[Issue]:
        """Newest issue contribution per repository."""
        user = await self._query_user(RECENT_ISSUES_QUERY, {"username": username})
        out = []
        groups = user.contributions_collection.issue_contributions_by_repository
        for group in groups:
            if not group.contributions.edges:
                continue
            latest = group.contributions.edges[0].node
            out.append(
                Issue(
                    repo=repo_from_ql(group.repository),
                    occurred_at=latest.occurred_at or ZERO_TIME,
                    title=latest.issue.title,
                )
            )
            if len(out) >= count:
                break
        logger.info(f"🔍 Fetched {len(out)} issue contributions for {username}")
        return out

    async def sponsors(self, username: str, count: int) -> List[Sponsor]:
        user = await self._query_user(
            SPONSORS_QUERY, {"username": username, "count": _page_size(count)}
        )
        out = []
        for edge in user.sponsorships_as_maintainer.edges:
            entity = edge.node.sponsor_entity
            if entity is None or entity.typename not in SPONSOR_TYPES:
                continue
            out.append(
                Sponsor(
                    user=User(
                        login=entity.login or "",
                        name=entity.name or "",
                        avatar_url=entity.avatar_url or "",
                        url=entity.url or "",
                    ),
                    created_at=edge.node.created_at or ZERO_TIME,
                )
            )
            if len(out) >= count:
                break
        logger.info(f"🔍 Fetched {len(out)} sponsors for {username}")
        return out

    async def gists(self, username: str, count: int) -> List[Gist]:
        user = await self._query_user(
            GISTS_QUERY, {"username": username, "count": _page_size(count)}
        )
        gists = [
            Gist(
                name=edge.node.name,
                description=edge.node.description or "",
                url=edge.node.url or "",
                created_at=edge.node.created_at or ZERO_TIME,
            )
            for edge in user.gists.edges
        ]
        logger.info(f"🔍 Fetched {len(gists)} gists for {username}")
        return gists[:count]

    async def recent_stars(self, username: str, count: int) -> List[Star]:
        """
        Recently starred public repositories, newest first.

        Private repositories are skipped, so several pages may be needed to
        collect ``count`` stars.
        """
        after_cursor: Optional[str] = None
        out: List[Star] = []
        pages_processed = 0

        while len(out) < count:
            page_cursor = after_cursor
            user = await self._query_user(
                RECENT_STARS_QUERY,
                {
                    "username": username,
                    "count": _page_size(count),
                    "after": after_cursor,
                },
            )
            connection = user.starred_repositories
            if not connection.edges:
                break

            for edge in connection.edges:
                if edge.node.is_private:
                    continue
                out.append(
                    Star(
                        starred_at=edge.starred_at or ZERO_TIME,
                        repo=repo_from_ql(edge.node),
                    )
                )
                after_cursor = edge.cursor or after_cursor
                if len(out) >= count:
                    break

            pages_processed += 1
            logger.debug(f"📄 Page {pages_processed}: {len(out)} public stars so far")

            if not connection.page_info.has_next_page:
                break
            after_cursor = connection.page_info.end_cursor or after_cursor
            if after_cursor == page_cursor:
                logger.warning("⚠️ Star scan cursor did not advance, stopping")
                break

        logger.info(f"🔍 Fetched {len(out)} stars for {username}")
        return out
