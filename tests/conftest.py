"""
pytest configuration for readmegen tests.

This file configures:
1. Test markers for different test types
2. Factories for GitHub GraphQL response nodes
3. Mocked adapters for feature service tests
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from readmegen.client import GitHubClient
from readmegen.domain import Release, Repo


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


@pytest.fixture
def release_node():
    """Factory for a GraphQL release node."""

    def make(
        tag="v1.0.0",
        published_at="2024-01-02T00:00:00Z",
        draft=False,
        prerelease=False,
    ):
        return {
            "name": f"Release {tag}" if tag else "",
            "tagName": tag,
            "publishedAt": published_at,
            "url": f"https://github.com/test-user/test-repo/releases/{tag}",
            "isPrerelease": prerelease,
            "isDraft": draft,
        }

    return make


@pytest.fixture
def repo_node():
    """Factory for a GraphQL repository node."""

    def make(
        name="test-user/test-repo",
        stars=10,
        private=False,
        pushed_at="2024-01-01T12:00:00Z",
        releases=None,
        recent_releases=None,
    ):
        node = {
            "nameWithOwner": name,
            "url": f"https://github.com/{name}",
            "description": f"Description of {name}",
            "isPrivate": private,
            "pushedAt": pushed_at,
            "stargazers": {"totalCount": stars},
            "releases": {"nodes": releases or []},
        }
        if recent_releases is not None:
            node["recentReleases"] = {"nodes": recent_releases}
        return node

    return make


@pytest.fixture
def mock_github_client():
    """GitHubClient double whose query methods are AsyncMocks."""
    client = MagicMock(spec=GitHubClient)
    client.authenticated = True
    return client


@pytest.fixture
def make_repo():
    """Factory for domain repositories."""

    def make(name, stars=0, private=False, published_at=None):
        release = None
        if published_at is not None:
            release = Release(
                name=name,
                tag_name="v1",
                published_at=published_at,
                url=f"https://github.com/{name}/releases/v1",
            )
        return Repo(
            name=name,
            url=f"https://github.com/{name}",
            stargazers=stars,
            is_private=private,
            last_release=release,
        )

    return make


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def at():
    """Shorthand for building UTC datetimes."""
    return utc
