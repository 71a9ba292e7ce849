"""
Domain models for the README generator.

These records are the only shapes that leave the provider adapters. Feature
services, the template facade and templates themselves work exclusively with
them, so provider response formats never leak past the adapter layer.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Tuple

# Stand-in for timestamps a provider did not supply.
ZERO_TIME = datetime.min.replace(tzinfo=timezone.utc)


def is_zero_time(value: Optional[datetime]) -> bool:
    """Return True for missing or zero-valued timestamps."""
    return value is None or value == ZERO_TIME


def meta_repo_name(username: str) -> str:
    """Name of the profile repository that is excluded from activity lists."""
    return f"{username}/{username}"


class PullRequestState(str, Enum):
    """Closed set of pull request states reported by GitHub."""

    OPEN = "OPEN"
    CLOSED = "CLOSED"
    MERGED = "MERGED"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Release:
    """Immutable domain model of a published release."""

    name: str = ""
    tag_name: str = ""
    published_at: datetime = ZERO_TIME
    url: str = ""


@dataclass(frozen=True)
class Repo:
    """Immutable domain model representing a repository."""

    name: str
    url: str = ""
    description: str = ""
    stargazers: int = 0
    is_private: bool = False
    last_release: Optional[Release] = None

    @property
    def owner(self) -> str:
        """Owner part of the ``owner/name`` identifier."""
        return self.name.split("/", 1)[0]

    @property
    def short_name(self) -> str:
        """Repository part of the ``owner/name`` identifier."""
        return self.name.split("/", 1)[-1]

    def __post_init__(self):
        if self.stargazers < 0:
            raise ValueError("Star count cannot be negative")


@dataclass(frozen=True)
class User:
    """Immutable domain model of an account (individual or organization)."""

    login: str
    name: str = ""
    avatar_url: str = ""
    url: str = ""


@dataclass(frozen=True)
class PullRequest:
    title: str
    url: str
    state: PullRequestState
    created_at: datetime
    repo: Repo


@dataclass(frozen=True)
class Contribution:
    """A push to ``repo``; ``occurred_at`` is the repository's pushed-at time."""

    occurred_at: datetime
    repo: Repo


@dataclass(frozen=True)
class Issue:
    """Most recent issue contribution to ``repo``."""

    repo: Repo
    occurred_at: datetime
    title: str


@dataclass(frozen=True)
class Gist:
    name: str
    description: str
    url: str
    created_at: datetime


@dataclass(frozen=True)
class Star:
    starred_at: datetime
    repo: Repo


@dataclass(frozen=True)
class Sponsor:
    user: User
    created_at: datetime


@dataclass(frozen=True)
class FeedEntry:
    title: str
    url: str
    published_at: datetime


@dataclass(frozen=True)
class Book:
    """A book as reported by a book-tracking service."""

    title: str
    url: str = ""
    image_url: str = ""
    authors: Tuple[str, ...] = field(default_factory=tuple)
    description: str = ""

    @property
    def author(self) -> str:
        """Comma separated author names."""
        return ", ".join(self.authors)


@dataclass(frozen=True)
class Review:
    """A shelf entry on Goodreads."""

    book: Book
    rating: int = 0
    started_at: datetime = ZERO_TIME
    read_at: datetime = ZERO_TIME
    updated_at: datetime = ZERO_TIME

    def __post_init__(self):
        if not 0 <= self.rating <= 5:
            raise ValueError("Rating must be between 0 and 5")


class ApiError(Exception):
    """Base exception for provider-related errors."""

    pass


class AuthenticationError(ApiError):
    """Exception raised when a provider rejects the credentials."""

    pass


class RateLimitError(ApiError):
    """Exception raised when the GitHub API rate limit is exceeded."""

    pass


class QueryError(ApiError):
    """Exception raised when a GraphQL query returns errors."""

    pass


class ParseError(ApiError):
    """Exception raised when a provider response cannot be parsed."""

    pass


class FeedError(ParseError):
    """Exception raised when an RSS/Atom feed cannot be parsed."""

    pass


class LiteralError(ApiError):
    """Exception raised when Literal.club login or queries fail."""

    pass
