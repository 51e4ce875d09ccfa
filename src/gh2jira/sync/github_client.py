"""GitHub API client using httpx for reading issues and writing labels.

This module provides an async HTTP client for the GitHub operations the
mirror needs: fetching one issue, listing recently updated issues by label,
and adding labels. Requests are never retried.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from gh2jira.exceptions import AuthError, NotFoundError, TransportError
from gh2jira.sync.models import SourceIssue

logger = logging.getLogger(__name__)

# GitHub API constants
GITHUB_API_BASE = "https://api.github.com"
DEFAULT_TIMEOUT = 30.0
MAX_PER_PAGE = 100


def format_since(since: datetime) -> str:
    """Format a watermark as the ISO-8601 UTC string GitHub expects."""
    if since.tzinfo is None:
        since = since.replace(tzinfo=timezone.utc)
    return since.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class GitHubClient:
    """Async GitHub API client for the issue mirror.

    Must be used as an async context manager. Every non-success response
    raises; there is no retry or backoff.
    """

    def __init__(
        self,
        repo: str,
        token: str,
        dry_run: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the GitHub client.

        Args:
            repo: Repository in 'owner/repo' format.
            token: GitHub access token.
            dry_run: If True, log label writes without executing them.
            timeout: Request timeout in seconds.

        Raises:
            AuthError: If the token is empty.
        """
        self.repo = repo
        self.dry_run = dry_run
        self.timeout = timeout

        if not token:
            raise AuthError("No GitHub token provided. Set GITHUB_TOKEN.")

        # Never log the token
        self._headers = {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {token}",
            "X-GitHub-Api-Version": "2022-11-28",
        }

        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> GitHubClient:
        """Enter async context manager."""
        self._client = httpx.AsyncClient(
            base_url=GITHUB_API_BASE,
            headers=self._headers,
            timeout=self.timeout,
        )
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, ensuring it's initialized."""
        if self._client is None:
            raise RuntimeError("GitHubClient must be used as async context manager")
        return self._client

    async def _request(
        self,
        method: str,
        endpoint: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """Make a single HTTP request and map failures to exceptions.

        Args:
            method: HTTP method (GET, POST, etc.).
            endpoint: API endpoint (e.g., "/repos/owner/repo/issues/1").
            **kwargs: Additional arguments passed to httpx request.

        Returns:
            httpx.Response object.

        Raises:
            AuthError: If authentication fails.
            NotFoundError: If the resource does not exist.
            TransportError: For network errors and other non-success statuses.
        """
        try:
            response = await self.client.request(method, endpoint, **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(f"GitHub request {method} {endpoint} failed: {e}") from e

        if response.status_code in (401, 403):
            raise AuthError(
                f"GitHub authentication failed ({response.status_code}). Check your token.",
                status_code=response.status_code,
            )

        if response.status_code == 404:
            raise NotFoundError(f"Resource not found: {endpoint}")

        if response.status_code >= 400:
            error_body = response.text
            logger.error(f"GitHub API error {response.status_code}: {error_body}")
            raise TransportError(
                f"GitHub API error {response.status_code}: {error_body[:200]}",
                status_code=response.status_code,
            )

        return response

    # =========================================================================
    # Issue Operations
    # =========================================================================

    async def get_issue(self, issue_number: int) -> SourceIssue:
        """Get a single issue by number.

        Args:
            issue_number: The issue number.

        Returns:
            SourceIssue object.

        Raises:
            NotFoundError: If the issue does not exist.
        """
        endpoint = f"/repos/{self.repo}/issues/{issue_number}"
        try:
            response = await self._request("GET", endpoint)
        except NotFoundError as e:
            raise NotFoundError(f"Issue {self.repo}#{issue_number} not found") from e
        return SourceIssue.from_api(response.json())

    async def list_issues(
        self,
        label: str,
        since: datetime,
        per_page: int = 30,
    ) -> list[SourceIssue]:
        """List open issues carrying a label, updated at or after a watermark.

        Args:
            label: Label name to filter by.
            since: Only issues updated at or after this time are returned.
            per_page: Maximum number of issues to fetch (1-100).

        Returns:
            Issues sorted most-recently-updated first. Pull requests are dropped.
        """
        params = {
            "labels": label,
            "since": format_since(since),
            "per_page": max(1, min(per_page, MAX_PER_PAGE)),
            "sort": "updated",
            "direction": "desc",
            "state": "open",
        }
        response = await self._request("GET", f"/repos/{self.repo}/issues", params=params)

        issues = [SourceIssue.from_api(item) for item in response.json() if "pull_request" not in item]
        oldest = datetime.min.replace(tzinfo=timezone.utc)
        issues.sort(key=lambda issue: issue.updated_at or oldest, reverse=True)

        logger.debug(f"Fetched {len(issues)} issue(s) labeled '{label}' since {params['since']}")
        return issues

    # =========================================================================
    # Label Operations
    # =========================================================================

    async def add_labels(
        self,
        issue_number: int,
        labels: list[str],
    ) -> list[str]:
        """Add labels to an issue (preserves existing labels).

        Args:
            issue_number: The issue number.
            labels: List of label names to add.

        Returns:
            List of all label names after update.

        Raises:
            TransportError: If the request fails or the response is not a label list.
        """
        if self.dry_run:
            logger.info(f"[DRY RUN] Would add labels to #{issue_number}: {labels}")
            return labels

        endpoint = f"/repos/{self.repo}/issues/{issue_number}/labels"
        response = await self._request(
            "POST",
            endpoint,
            json={"labels": labels},
        )
        try:
            return [label["name"] for label in response.json()]
        except (ValueError, KeyError, TypeError) as e:
            raise TransportError(f"Unexpected response adding labels to #{issue_number}: {e}") from e
