"""Jira REST API client for creating mirrored issues.

This module provides an async HTTP client that submits drafts to
``/rest/api/latest/issue/``. Authentication is pluggable: Basic auth built
from an email and API token, or a pre-encoded token passed through as is,
optionally combined with edge-access headers for instances behind an
access gateway.
"""

from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from gh2jira.sync.models import CreationResult, DraftIssue

logger = logging.getLogger(__name__)

# Jira API constants
DEFAULT_TIMEOUT = 30.0
CREATE_ISSUE_PATH = "/rest/api/latest/issue/"
DRY_RUN_KEY = "DRY-RUN"


class JiraAuth(Protocol):
    """Something that can produce the headers authenticating a Jira request."""

    def headers(self) -> dict[str, str]: ...


@dataclass(frozen=True)
class BasicAuth:
    """HTTP Basic auth built from an Atlassian account email and API token."""

    email: str
    token: str

    def headers(self) -> dict[str, str]:
        credentials = f"{self.email}:{self.token}"
        encoded = base64.b64encode(credentials.encode()).decode()
        return {"Authorization": f"Basic {encoded}"}


@dataclass(frozen=True)
class TokenAuth:
    """A pre-encoded Basic credential supplied directly by configuration."""

    token: str

    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Basic {self.token}"}


@dataclass(frozen=True)
class EdgeAccess:
    """Adds access-gateway client headers on top of another auth strategy."""

    inner: JiraAuth
    client_id: str
    client_secret: str

    def headers(self) -> dict[str, str]:
        headers = dict(self.inner.headers())
        headers["CF-Access-Client-Id"] = self.client_id
        headers["CF-Access-Client-Secret"] = self.client_secret
        return headers


class JiraClient:
    """Async Jira client that turns drafts into tickets.

    ``create_issue`` never raises for a single failed submission: any
    non-201 status, transport error or serialization error comes back as a
    failed CreationResult that still carries the draft.
    """

    def __init__(
        self,
        hostname: str,
        auth: JiraAuth,
        dry_run: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the Jira client.

        Args:
            hostname: Jira host (e.g., company.atlassian.net), no scheme.
            auth: Authentication strategy producing the request headers.
            dry_run: If True, log drafts without submitting them.
            timeout: Request timeout in seconds.
        """
        self.hostname = hostname.strip().removeprefix("https://").rstrip("/")
        self.base_url = f"https://{self.hostname}"
        self.dry_run = dry_run
        self.timeout = timeout

        # Never log these
        self._headers = {
            "Accept": "application/json",
            "content-type": "application/json",
            **auth.headers(),
        }

        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> JiraClient:
        """Enter async context manager."""
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers,
            timeout=self.timeout,
        )
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        """Exit async context manager."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, ensuring it's initialized."""
        if self._client is None:
            raise RuntimeError("JiraClient must be used as async context manager")
        return self._client

    @property
    def create_url(self) -> str:
        """Full URL of the issue-creation endpoint."""
        return f"{self.base_url}{CREATE_ISSUE_PATH}"

    def browse_url(self, key: str) -> str:
        """Human-facing URL of a ticket."""
        return f"{self.base_url}/browse/{key}"

    async def create_issue(self, draft: DraftIssue) -> CreationResult:
        """Submit a draft to Jira.

        Args:
            draft: The issue to create.

        Returns:
            CreationResult with the new key on HTTP 201, or with an error otherwise.
        """
        try:
            content = json.dumps(draft.to_payload())
        except (TypeError, ValueError) as e:
            logger.error(f"Failed to serialize Jira draft '{draft.summary}': {e}")
            return CreationResult(draft=draft, error=f"serialization error: {e}")

        if self.dry_run:
            logger.info(f"[DRY RUN] Would create Jira issue in {draft.project_key}: {content}")
            return CreationResult(draft=draft, key=DRY_RUN_KEY)

        try:
            response = await self.client.post(CREATE_ISSUE_PATH, content=content)
        except httpx.HTTPError as e:
            logger.error(f"Jira request failed for '{draft.summary}': {e}")
            return CreationResult(draft=draft, error=f"transport error: {e}")

        if response.status_code != 201:
            logger.error(f"Failed to create Jira issue for '{draft.summary}'. statusCode: {response.status_code}")
            return CreationResult(
                draft=draft,
                status_code=response.status_code,
                error=f"Jira API error {response.status_code}: {response.text[:200]}",
            )

        # 201 is authoritative even if the body is unreadable
        data = _parse_json(response)
        key = str(data.get("key") or "")
        if key:
            logger.info(f"Created Jira issue {key}: {self.browse_url(key)}")
        else:
            logger.warning(f"Jira created an issue for '{draft.summary}' but returned no key")
        return CreationResult(
            draft=draft,
            key=key,
            id=data.get("id"),
            self_url=data.get("self"),
            status_code=response.status_code,
        )


def _parse_json(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}
