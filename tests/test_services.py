"""
Unit tests for the feature services.

These tests verify that:
1. The profile repository and private repositories are filtered out
2. Adapters are asked for enough extra items to survive filtering
3. Results are re-sorted and never exceed the requested count
4. Missing identities or credentials degrade to empty results
5. Adapter errors propagate unchanged
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from readmegen.domain import (
    Book,
    Contribution,
    FeedEntry,
    Issue,
    PullRequest,
    PullRequestState,
    QueryError,
    Review,
)
from readmegen.goodreads import GoodreadsClient
from readmegen.literal import LiteralClient
from readmegen.rss import RssClient
from readmegen.services import (
    GitHubService,
    GoodreadsService,
    LiteralService,
    RssService,
)


@pytest.fixture
def service(mock_github_client):
    return GitHubService(mock_github_client, username="alice")


def pull_request(repo, at):
    return PullRequest(
        title=f"Change {repo.name}",
        url=f"{repo.url}/pull/1",
        state=PullRequestState.OPEN,
        created_at=at,
        repo=repo,
    )


class TestRecentRepos:
    """Test repository and fork listings."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("position", [0, 1, 3])
    async def test_meta_repo_excluded_at_any_position(
        self, service, mock_github_client, make_repo, position
    ):
        repos = [make_repo(f"alice/r{i}") for i in range(3)]
        repos.insert(position, make_repo("alice/alice"))
        mock_github_client.recent_repos.return_value = repos

        result = await service.recent_repos(3)

        assert [r.name for r in result] == ["alice/r0", "alice/r1", "alice/r2"]

    @pytest.mark.asyncio
    async def test_over_fetches_by_one(self, service, mock_github_client, make_repo):
        mock_github_client.recent_repos.return_value = []

        await service.recent_repos(5)

        mock_github_client.recent_repos.assert_awaited_once_with("alice", 6, False)

    @pytest.mark.asyncio
    async def test_forks_use_fork_filter(self, service, mock_github_client, make_repo):
        mock_github_client.recent_repos.return_value = [
            make_repo("alice/fork1"),
            make_repo("alice/fork2"),
        ]

        result = await service.recent_forks(1)

        assert [r.name for r in result] == ["alice/fork1"]
        mock_github_client.recent_repos.assert_awaited_once_with("alice", 2, True)

    @pytest.mark.asyncio
    async def test_returns_exactly_count_when_available(
        self, service, mock_github_client, make_repo
    ):
        mock_github_client.recent_repos.return_value = [
            make_repo(f"alice/r{i}") for i in range(6)
        ]

        assert len(await service.recent_repos(5)) == 5

    @pytest.mark.asyncio
    async def test_repo_lookup_keeps_private_repos(
        self, service, mock_github_client, make_repo
    ):
        secret = make_repo("bob/secret", private=True)
        mock_github_client.repo.return_value = secret

        assert await service.repo("bob", "secret") is secret
        mock_github_client.repo.assert_awaited_once_with("bob", "secret")


class TestRecentPullRequests:
    @pytest.mark.asyncio
    async def test_filters_meta_and_private(
        self, service, mock_github_client, make_repo, at
    ):
        prs = [
            pull_request(make_repo("alice/alice"), at(2024, 5, 1)),
            pull_request(make_repo("bob/lib"), at(2024, 4, 1)),
            pull_request(make_repo("corp/internal", private=True), at(2024, 3, 1)),
            pull_request(make_repo("carol/app"), at(2024, 2, 1)),
        ]
        mock_github_client.recent_pull_requests.return_value = prs

        result = await service.recent_pull_requests(3)

        assert [pr.repo.name for pr in result] == ["bob/lib", "carol/app"]
        mock_github_client.recent_pull_requests.assert_awaited_once_with("alice", 4)


class TestRecentReleases:
    """Test release ordering."""

    @pytest.mark.asyncio
    async def test_sorted_by_time_then_stars(
        self, service, mock_github_client, make_repo, at
    ):
        mock_github_client.recent_releases.return_value = [
            make_repo("x/a", stars=5, published_at=at(2024, 1, 10)),
            make_repo("x/b", stars=9, published_at=at(2024, 1, 10)),
            make_repo("x/c", stars=100, published_at=at(2024, 1, 1)),
        ]

        result = await service.recent_releases(3)

        assert [r.name for r in result] == ["x/b", "x/a", "x/c"]
        mock_github_client.recent_releases.assert_awaited_once_with("alice", 3)

    @pytest.mark.asyncio
    async def test_result_bounded_by_count(
        self, service, mock_github_client, make_repo, at
    ):
        mock_github_client.recent_releases.return_value = [
            make_repo(f"x/{i}", published_at=at(2024, 1, i + 1)) for i in range(4)
        ]

        result = await service.recent_releases(2)

        assert [r.name for r in result] == ["x/3", "x/2"]


class TestRecentActivity:
    """Test contribution and issue listings."""

    @pytest.mark.asyncio
    async def test_contributions_filtered_and_sorted(
        self, service, mock_github_client, make_repo, at
    ):
        mock_github_client.recent_contributions.return_value = [
            Contribution(occurred_at=at(2024, 1, 1), repo=make_repo("x/old")),
            Contribution(occurred_at=at(2024, 6, 1), repo=make_repo("alice/alice")),
            Contribution(occurred_at=at(2024, 3, 1), repo=make_repo("x/new")),
            Contribution(
                occurred_at=at(2024, 5, 1), repo=make_repo("x/hidden", private=True)
            ),
        ]

        result = await service.recent_contributions(5)

        assert [c.repo.name for c in result] == ["x/new", "x/old"]
        mock_github_client.recent_contributions.assert_awaited_once_with("alice", 15)

    @pytest.mark.asyncio
    async def test_contributions_bounded_by_count(
        self, service, mock_github_client, make_repo, at
    ):
        mock_github_client.recent_contributions.return_value = [
            Contribution(occurred_at=at(2024, 1, i + 1), repo=make_repo(f"x/{i}"))
            for i in range(8)
        ]

        result = await service.recent_contributions(3)

        assert [c.repo.name for c in result] == ["x/7", "x/6", "x/5"]

    @pytest.mark.asyncio
    async def test_issues_filtered_and_sorted(
        self, service, mock_github_client, make_repo, at
    ):
        mock_github_client.recent_issues.return_value = [
            Issue(repo=make_repo("x/a"), occurred_at=at(2024, 1, 1), title="old"),
            Issue(repo=make_repo("x/b", private=True), occurred_at=at(2024, 9, 1), title="hidden"),
            Issue(repo=make_repo("x/c"), occurred_at=at(2024, 2, 1), title="new"),
        ]

        result = await service.recent_issues(2)

        assert [i.title for i in result] == ["new", "old"]
        mock_github_client.recent_issues.assert_awaited_once_with("alice", 12)


class TestAnonymousMode:
    """Test behavior when no GitHub identity is known."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "feature",
        [
            "recent_repos",
            "recent_forks",
            "followers",
            "recent_pull_requests",
            "recent_releases",
            "recent_contributions",
            "recent_issues",
            "gists",
            "recent_stars",
            "sponsors",
        ],
    )
    async def test_user_scoped_features_return_empty(self, mock_github_client, feature):
        service = GitHubService(mock_github_client, username="")

        result = await getattr(service, feature)(5)

        assert result == []
        assert mock_github_client.mock_calls == []

    @pytest.mark.asyncio
    async def test_zero_count_makes_no_request(self, service, mock_github_client):
        assert await service.followers(0) == []
        assert await service.recent_stars(-1) == []
        mock_github_client.followers.assert_not_awaited()
        mock_github_client.recent_stars.assert_not_awaited()

    def test_meta_repo_name_requires_identity(self, mock_github_client):
        assert GitHubService(mock_github_client).meta_repo is None
        assert GitHubService(mock_github_client, "bob").meta_repo == "bob/bob"


class TestErrorPropagation:
    @pytest.mark.asyncio
    async def test_adapter_errors_propagate(self, service, mock_github_client):
        mock_github_client.gists.side_effect = QueryError("boom")

        with pytest.raises(QueryError, match="boom"):
            await service.gists(3)


class TestBookServices:
    """Test Goodreads and Literal.club services."""

    @pytest.mark.asyncio
    async def test_goodreads_without_credentials(self):
        client = GoodreadsClient(token=None, user_id=None)
        client.reviews = AsyncMock()

        service = GoodreadsService(client)

        assert await service.reviews(3) == []
        assert await service.currently_reading(3) == []
        client.reviews.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_goodreads_delegates_when_configured(self):
        client = MagicMock(spec=GoodreadsClient)
        client.configured = True
        review = Review(book=Book(title="Dune"), rating=5)
        client.reviews.return_value = [review]

        result = await GoodreadsService(client).reviews(1)

        assert result == [review]
        client.reviews.assert_awaited_once_with(1)

    @pytest.mark.asyncio
    async def test_literal_without_credentials(self):
        client = LiteralClient(email=None, password=None)
        client.currently_reading = AsyncMock()

        assert await LiteralService(client).currently_reading(2) == []
        client.currently_reading.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_literal_delegates_when_configured(self):
        client = MagicMock(spec=LiteralClient)
        client.configured = True
        client.currently_reading.return_value = [Book(title="Dune")]

        result = await LiteralService(client).currently_reading(2)

        assert [b.title for b in result] == ["Dune"]


class TestRssService:
    @pytest.mark.asyncio
    async def test_delegates_to_client(self, at):
        client = MagicMock(spec=RssClient)
        entry = FeedEntry(title="Post", url="https://blog.example/post", published_at=at(2024, 1, 1))
        client.recent_entries.return_value = [entry]

        result = await RssService(client).recent_entries("https://blog.example/feed", 1)

        assert result == [entry]
        client.recent_entries.assert_awaited_once_with("https://blog.example/feed", 1)

    @pytest.mark.asyncio
    async def test_zero_count(self):
        client = MagicMock(spec=RssClient)
        assert await RssService(client).recent_entries("https://blog.example/feed", 0) == []
        client.recent_entries.assert_not_awaited()
