"""
Response shapes of the GitHub GraphQL v4 API.

These Pydantic models mirror the nested, paginated JSON returned by the
queries in ``readmegen.client``. They are private to that adapter: nothing
outside of it should import them, the rest of the application only sees the
flat records in ``readmegen.domain``.
"""

from datetime import datetime
from typing import List, Optional

from dateutil import parser as date_parser
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class GraphQLModel(BaseModel):
    """Base model mapping snake_case fields to GitHub's camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class Timestamped(GraphQLModel):
    """Parses every ``*_at`` field returned as an ISO 8601 string."""

    @field_validator(
        "published_at",
        "pushed_at",
        "created_at",
        "starred_at",
        "occurred_at",
        mode="before",
        check_fields=False,
    )
    @classmethod
    def parse_datetime(cls, v):
        """
        Parse GitHub datetime strings into timezone-aware datetimes.

        GitHub reports missing timestamps as ``null``; those stay ``None`` and
        are normalized when mapping into domain records.
        """
        if isinstance(v, str):
            return date_parser.isoparse(v) if v else None
        return v


class PageInfo(GraphQLModel):
    end_cursor: Optional[str] = None
    has_next_page: bool = False


class QLRelease(Timestamped):
    name: Optional[str] = None
    tag_name: Optional[str] = None
    published_at: Optional[datetime] = None
    url: Optional[str] = None
    is_prerelease: bool = False
    is_draft: bool = False


class QLReleaseConnection(GraphQLModel):
    nodes: List[QLRelease] = Field(default_factory=list)


class QLStargazers(GraphQLModel):
    total_count: int = 0


class QLRepository(Timestamped):
    name_with_owner: str
    url: Optional[str] = None
    description: Optional[str] = None
    is_private: bool = False
    pushed_at: Optional[datetime] = None
    stargazers: QLStargazers = Field(default_factory=QLStargazers)
    releases: QLReleaseConnection = Field(default_factory=QLReleaseConnection)
    # Only requested by the release scan, aliased to avoid clashing with
    # ``releases(last: 1)``.
    recent_releases: QLReleaseConnection = Field(
        default_factory=QLReleaseConnection
    )


class QLUser(GraphQLModel):
    login: str
    name: Optional[str] = None
    avatar_url: Optional[str] = None
    url: Optional[str] = None


class QLPullRequest(Timestamped):
    url: str
    title: str
    state: str
    created_at: Optional[datetime] = None
    repository: QLRepository


class QLGist(Timestamped):
    name: str
    description: Optional[str] = None
    url: Optional[str] = None
    created_at: Optional[datetime] = None


class RepositoryEdge(GraphQLModel):
    cursor: Optional[str] = None
    node: QLRepository


class RepositoryConnection(GraphQLModel):
    total_count: int = 0
    page_info: PageInfo = Field(default_factory=PageInfo)
    edges: List[RepositoryEdge] = Field(default_factory=list)


class UserEdge(GraphQLModel):
    cursor: Optional[str] = None
    node: QLUser


class UserConnection(GraphQLModel):
    total_count: int = 0
    edges: List[UserEdge] = Field(default_factory=list)


class PullRequestEdge(GraphQLModel):
    cursor: Optional[str] = None
    node: QLPullRequest


class PullRequestConnection(GraphQLModel):
    total_count: int = 0
    edges: List[PullRequestEdge] = Field(default_factory=list)


class GistEdge(GraphQLModel):
    cursor: Optional[str] = None
    node: QLGist


class GistConnection(GraphQLModel):
    total_count: int = 0
    edges: List[GistEdge] = Field(default_factory=list)


class StarEdge(Timestamped):
    cursor: Optional[str] = None
    starred_at: Optional[datetime] = None
    node: QLRepository


class StarConnection(GraphQLModel):
    total_count: int = 0
    page_info: PageInfo = Field(default_factory=PageInfo)
    edges: List[StarEdge] = Field(default_factory=list)


class QLIssueTitle(GraphQLModel):
    title: str = ""


class IssueContributionNode(Timestamped):
    occurred_at: Optional[datetime] = None
    issue: QLIssueTitle = Field(default_factory=QLIssueTitle)


class IssueContributionEdge(GraphQLModel):
    cursor: Optional[str] = None
    node: IssueContributionNode


class IssueContributionConnection(GraphQLModel):
    edges: List[IssueContributionEdge] = Field(default_factory=list)


class IssueContributionsByRepository(GraphQLModel):
    contributions: IssueContributionConnection = Field(
        default_factory=IssueContributionConnection
    )
    repository: QLRepository


class ContributionsCollection(GraphQLModel):
    issue_contributions_by_repository: List[IssueContributionsByRepository] = Field(
        default_factory=list
    )


class SponsorEntity(GraphQLModel):
    """``User`` or ``Organization``, discriminated by ``__typename``."""

    typename: str = Field(alias="__typename")
    login: Optional[str] = None
    name: Optional[str] = None
    avatar_url: Optional[str] = None
    url: Optional[str] = None


class SponsorshipNode(Timestamped):
    created_at: Optional[datetime] = None
    sponsor_entity: Optional[SponsorEntity] = None


class SponsorshipEdge(GraphQLModel):
    cursor: Optional[str] = None
    node: SponsorshipNode


class SponsorshipConnection(GraphQLModel):
    total_count: int = 0
    edges: List[SponsorshipEdge] = Field(default_factory=list)


class QLUserActivity(GraphQLModel):
    """The ``user(login: ...)`` root; each query fills in one connection."""

    login: str
    repositories: Optional[RepositoryConnection] = None
    repositories_contributed_to: Optional[RepositoryConnection] = None
    followers: Optional[UserConnection] = None
    pull_requests: Optional[PullRequestConnection] = None
    gists: Optional[GistConnection] = None
    starred_repositories: Optional[StarConnection] = None
    contributions_collection: Optional[ContributionsCollection] = None
    sponsorships_as_maintainer: Optional[SponsorshipConnection] = None
