"""
GitHub REST API client for Prscout.

Fetches pull requests, their review comments and changed files, and the
authenticated user's identity and team memberships.
Uses GH_TOKEN / GITHUB_TOKEN for authentication.

Calls are synchronous and never retried; the aggregation engine runs the
per-PR lookups concurrently on worker threads.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterator

import requests

from . import __version__


logger = logging.getLogger(__name__)

GITHUB_API_BASE = "https://api.github.com"
DEFAULT_PER_PAGE = 100
REQUEST_TIMEOUT = 30.0


def parse_timestamp(raw: str | None) -> datetime | None:
    """
    Parse a GitHub timestamp ("2024-06-15T12:30:00Z") into an aware UTC datetime.

    Returns None for missing or malformed values.
    """
    if not raw:
        return None
    try:
        dt = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass
class PullRequest:
    """Parsed GitHub PR data."""
    number: int
    state: str
    title: str | None
    body: str | None
    author: str | None
    updated_at: datetime | None
    html_url: str | None
    requested_reviewers: list[str] = field(default_factory=list)
    assignees: list[str] = field(default_factory=list)
    requested_teams: list[int] = field(default_factory=list)


@dataclass
class Comment:
    """Parsed review comment."""
    author: str | None
    body: str


@dataclass
class FileStat:
    """Parsed GitHub file change data."""
    path: str
    additions: int
    deletions: int


@dataclass
class Team:
    """A team the authenticated user belongs to."""
    id: int
    slug: str
    org: str | None


class GitHubAPIError(Exception):
    """Error from GitHub API."""
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(GitHubAPIError):
    """Rate limit exceeded."""
    def __init__(self, reset_time: int | None = None):
        super().__init__("GitHub API rate limit exceeded", 403)
        self.reset_time = reset_time


class GitHubClient:
    """GitHub REST API client with pagination and rate limit detection."""

    def __init__(self, token: str, api_url: str = GITHUB_API_BASE):
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.session = requests.Session()

        self.session.headers["Authorization"] = f"token {self.token}"
        self.session.headers["Accept"] = "application/vnd.github+json"
        self.session.headers["User-Agent"] = f"prscout/{__version__}"

    def _request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> requests.Response:
        """Make a single API request, raising GitHubAPIError on failure."""
        url = f"{self.api_url}{endpoint}"
        kwargs.setdefault("timeout", REQUEST_TIMEOUT)

        try:
            response = self.session.request(method, url, params=params, **kwargs)
        except requests.RequestException as e:
            raise GitHubAPIError(f"Request to {endpoint} failed: {e}") from e

        # Check rate limit
        if response.status_code == 403:
            remaining = response.headers.get("X-RateLimit-Remaining")
            if remaining == "0":
                reset_time = int(response.headers.get("X-RateLimit-Reset", 0))
                raise RateLimitError(reset_time)

        if response.status_code >= 400:
            raise GitHubAPIError(
                f"GitHub API error: {response.status_code} - {response.text}",
                response.status_code
            )

        return response

    def _get_json(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        response = self._request("GET", endpoint, params=params)
        try:
            return response.json()
        except ValueError as e:
            raise GitHubAPIError(
                f"GitHub API returned invalid JSON for {endpoint}", response.status_code
            ) from e

    def _paginate(
        self,
        endpoint: str,
        params: dict[str, Any] | None = None,
        max_pages: int | None = None,
    ) -> Iterator[dict[str, Any]]:
        """Iterate through paginated API results."""
        params = dict(params or {})
        params.setdefault("per_page", DEFAULT_PER_PAGE)
        page = 1

        while True:
            if max_pages and page > max_pages:
                break

            params["page"] = page
            items = self._get_json(endpoint, params=params)

            if not isinstance(items, list):
                raise GitHubAPIError(f"Unexpected response while listing {endpoint}")

            if not items:
                break

            yield from items

            # Check if there are more pages
            if len(items) < params["per_page"]:
                break

            page += 1

    def current_user(self) -> str:
        """Return the login of the authenticated user."""
        data = self._get_json("/user")
        login = data.get("login") if isinstance(data, dict) else None
        if not login:
            raise GitHubAPIError("GitHub did not return a login for the current user")
        return login

    def list_user_teams(self, org: str) -> set[int]:
        """
        Get the ids of the authenticated user's teams within an organization.

        Args:
            org: Organization login; teams of other organizations are ignored

        Returns:
            Set of team ids
        """
        teams = [self._parse_team(item) for item in self._paginate("/user/teams")]
        return {team.id for team in teams if team.org == org}

    def list_pulls(
        self,
        owner: str,
        repo: str,
        state: str = "open",
        per_page: int = 50,
    ) -> list[PullRequest]:
        """
        List one page of pull requests for a repository.

        Args:
            owner: Repository owner
            repo: Repository name
            state: PR state filter (open, closed, all)
            per_page: Number of PRs to fetch (GitHub caps this at 100)

        Returns:
            List of PullRequest objects
        """
        endpoint = f"/repos/{owner}/{repo}/pulls"
        params = {"state": state, "per_page": per_page}

        items = list(self._paginate(endpoint, params, max_pages=1))
        logger.debug("Listed %d PRs in %s/%s (state=%s)", len(items), owner, repo, state)
        return [self._parse_pr(item) for item in items]

    def list_review_comments(self, owner: str, repo: str, number: int) -> list[Comment]:
        """Get the inline review comments of a pull request."""
        endpoint = f"/repos/{owner}/{repo}/pulls/{number}/comments"

        comments = []
        for item in self._paginate(endpoint):
            user = item.get("user") or {}
            comments.append(Comment(
                author=user.get("login"),
                body=item.get("body") or "",
            ))

        return comments

    def list_pull_files(self, owner: str, repo: str, number: int) -> list[FileStat]:
        """
        Get files changed in a pull request.

        Args:
            owner: Repository owner
            repo: Repository name
            number: PR number

        Returns:
            List of FileStat objects
        """
        endpoint = f"/repos/{owner}/{repo}/pulls/{number}/files"

        files = []
        for item in self._paginate(endpoint):
            files.append(FileStat(
                path=item.get("filename", ""),
                additions=item.get("additions") or 0,
                deletions=item.get("deletions") or 0,
            ))

        return files

    def _parse_pr(self, data: dict[str, Any]) -> PullRequest:
        """Parse raw PR data into PullRequest object."""
        user = data.get("user") or {}

        return PullRequest(
            number=data.get("number", 0),
            state=data.get("state", ""),
            title=data.get("title"),
            body=data.get("body"),
            author=user.get("login"),
            updated_at=parse_timestamp(data.get("updated_at")),
            html_url=data.get("html_url"),
            requested_reviewers=_logins(data.get("requested_reviewers")),
            assignees=_logins(data.get("assignees")),
            requested_teams=[
                team["id"] for team in data.get("requested_teams") or []
                if team.get("id") is not None
            ],
        )

    def _parse_team(self, data: dict[str, Any]) -> Team:
        org = data.get("organization") or {}
        return Team(
            id=data.get("id", 0),
            slug=data.get("slug", ""),
            org=org.get("login"),
        )


def _logins(users: list[dict[str, Any]] | None) -> list[str]:
    return [user["login"] for user in users or [] if user.get("login")]
