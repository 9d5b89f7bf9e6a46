"""GitHub API client for Buzzguard.

Wraps the GitHub REST API with:
- OAuth access token authentication
- Commit status reporting and pull request commit listing
- Repository listing and webhook registration
- Rate limit monitoring on every response

All methods use httpx.AsyncClient.  Responses are validated into small
frozen dataclasses at this boundary; nothing past it sees raw JSON.
"""

from __future__ import annotations

import enum
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import httpx

from buzzguard.core.exceptions import (
    GitHubAPIError,
    GitHubAuthError,
    GitHubRateLimitError,
    GitHubResponseError,
)

logger = logging.getLogger(__name__)

GITHUB_API_BASE = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"
USER_AGENT = "Buzzguard/0.1"

# Common headers for every GitHub API request.
_BASE_HEADERS: dict[str, str] = {
    "Accept": "application/vnd.github+json",
    "X-GitHub-Api-Version": GITHUB_API_VERSION,
    "User-Agent": USER_AGENT,
}

MAX_PAGE_SIZE = 100
STATUS_DESCRIPTION_LIMIT = 140


# =============================================================================
#  Typed responses
# =============================================================================


class CheckState(str, enum.Enum):
    """Commit status states GitHub accepts for a context."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class CommitStatus:
    """One status update for a commit sha."""

    state: CheckState
    description: str
    context: str

    def as_json(self) -> dict[str, str]:
        description = self.description
        if len(description) > STATUS_DESCRIPTION_LIMIT:
            description = description[: STATUS_DESCRIPTION_LIMIT - 1] + "…"
        return {
            "state": self.state.value,
            "description": description,
            "context": self.context,
        }


@dataclass(frozen=True)
class StatusAck:
    """GitHub's acknowledgment of a created status."""

    id: int
    state: CheckState
    context: str

    @classmethod
    def from_api(cls, data: Any) -> StatusAck:
        try:
            return cls(id=int(data["id"]), state=CheckState(data["state"]), context=str(data["context"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise GitHubResponseError(f"Unexpected status response: {exc!r}") from exc


@dataclass(frozen=True)
class CommitRecord:
    """The parts of a pull request commit the buzzword check looks at."""

    sha: str
    author_login: str
    message: str

    @classmethod
    def from_api(cls, data: Any) -> CommitRecord:
        """Build from one item of ``GET /repos/{repo}/pulls/{n}/commits``.

        ``author`` is null when the commit email maps to no GitHub account;
        the git author name is used instead.
        """
        try:
            sha = data["sha"]
            commit = data["commit"]
            message = commit["message"]
            author = data.get("author") or {}
            login = author.get("login") or (commit.get("author") or {}).get("name") or "unknown"
        except (KeyError, TypeError, AttributeError) as exc:
            raise GitHubResponseError(f"Unexpected commit entry: {exc!r}") from exc
        if not isinstance(sha, str) or not isinstance(message, str):
            raise GitHubResponseError("Commit entry without sha or message")
        return cls(sha=sha, author_login=str(login), message=message)


# =============================================================================
#  Client
# =============================================================================


class GitHubClient:
    """Async GitHub API client authenticated with an OAuth access token.

    ``transport`` lets tests plug in an ``httpx.MockTransport``.
    """

    def __init__(
        self,
        access_token: str,
        *,
        base_url: str = GITHUB_API_BASE,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    # ------------------------------------------------------------------
    #  Core request method
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict | None = None,
    ) -> httpx.Response:
        """Make an authenticated GitHub API request and map error statuses."""
        headers = dict(_BASE_HEADERS)
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.request(
                    method,
                    f"{self.base_url}{path}",
                    headers=headers,
                    params=params,
                    json=json_body,
                )
            except httpx.HTTPError as exc:
                raise GitHubAPIError(f"{method} {path} failed: {exc}") from exc

        self._check_rate_limit(response)

        if response.status_code == 401:
            raise GitHubAuthError("GitHub rejected the access token, check BUZZGUARD_GITHUB_ACCESS_TOKEN")
        if response.status_code == 403 and response.headers.get("X-RateLimit-Remaining") == "0":
            reset_at = response.headers.get("X-RateLimit-Reset", "")
            raise GitHubRateLimitError(f"Rate limit exceeded. Resets at: {reset_at}", reset_at=reset_at)
        if response.status_code >= 400:
            raise GitHubAPIError(
                f"{method} {path} returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        return response

    def _check_rate_limit(self, response: httpx.Response) -> None:
        """Log rate limit status from every GitHub API response."""
        remaining_str = response.headers.get("X-RateLimit-Remaining")
        if remaining_str is None or not remaining_str.isdigit():
            return

        remaining = int(remaining_str)
        if remaining < 100:
            reset_ts = int(response.headers.get("X-RateLimit-Reset", "0") or 0)
            logger.warning(
                "GitHub rate limit low",
                extra={
                    "remaining": remaining,
                    "limit": response.headers.get("X-RateLimit-Limit", "unknown"),
                    "resets_in_seconds": max(0, reset_ts - int(time.time())),
                },
            )

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise GitHubResponseError(f"Non-JSON response from GitHub: {response.text[:200]}") from exc

    # ------------------------------------------------------------------
    #  Public API methods
    # ------------------------------------------------------------------

    async def create_status(self, repo_full_name: str, sha: str, status: CommitStatus) -> StatusAck:
        """Attach a commit status to ``sha``.

        Args:
            repo_full_name: ``owner/repo`` format.
            sha: Full commit SHA.
            status: State, description and context label.

        Returns:
            The status as acknowledged by GitHub.
        """
        response = await self._request(
            "POST",
            f"/repos/{repo_full_name}/statuses/{sha}",
            json_body=status.as_json(),
        )
        return StatusAck.from_api(self._json(response))

    async def list_pull_request_commits(
        self, repo_full_name: str, pr_number: int, per_page: int = MAX_PAGE_SIZE
    ) -> list[CommitRecord]:
        """Return the first page (at most 100) of a pull request's commits, in API order."""
        response = await self._request(
            "GET",
            f"/repos/{repo_full_name}/pulls/{pr_number}/commits",
            params={"per_page": min(per_page, MAX_PAGE_SIZE)},
        )
        data = self._json(response)
        if not isinstance(data, list):
            raise GitHubResponseError("Commit listing is not a JSON array")
        return [CommitRecord.from_api(item) for item in data]

    async def list_repositories(self, per_page: int = MAX_PAGE_SIZE) -> list[str]:
        """Return ``owner/repo`` names the authenticated user can access."""
        response = await self._request(
            "GET",
            "/user/repos",
            params={"per_page": min(per_page, MAX_PAGE_SIZE)},
        )
        data = self._json(response)
        if not isinstance(data, list):
            raise GitHubResponseError("Repository listing is not a JSON array")
        try:
            return [str(repo["full_name"]) for repo in data]
        except (KeyError, TypeError) as exc:
            raise GitHubResponseError(f"Unexpected repository entry: {exc!r}") from exc

    async def create_hook(
        self,
        repo_full_name: str,
        url: str,
        secret: str,
        events: Sequence[str] = ("pull_request",),
    ) -> int:
        """Register a JSON webhook on a repository and return its id."""
        payload: dict[str, Any] = {
            "name": "web",
            "config": {"url": url, "content_type": "json", "secret": secret},
            "events": list(events),
            "active": True,
        }
        response = await self._request("POST", f"/repos/{repo_full_name}/hooks", json_body=payload)
        data = self._json(response)
        try:
            return int(data["id"])
        except (KeyError, TypeError, ValueError) as exc:
            raise GitHubResponseError(f"Unexpected hook response: {exc!r}") from exc

    async def get_rate_limit(self) -> int:
        """Return the core request limit for the current credentials."""
        response = await self._request("GET", "/rate_limit")
        data = self._json(response)
        try:
            return int(data["resources"]["core"]["limit"])
        except (KeyError, TypeError, ValueError) as exc:
            raise GitHubResponseError(f"Unexpected rate limit response: {exc!r}") from exc
