"""Data models for the GitHub to Jira mirror.

SourceIssue is read from GitHub, DraftIssue is built per eligible issue and
handed to Jira, and CreationResult records what Jira answered.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

DEFAULT_BACK_REFERENCE_FIELD = "customfield_10016"


@dataclass
class SourceIssue:
    """A GitHub issue as seen by the mirror."""

    number: int
    title: str
    body: str = ""
    url: str = ""
    labels: list[str] = field(default_factory=list)
    updated_at: datetime | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> SourceIssue:
        """Build from a GitHub REST issue payload."""
        updated_at = None
        updated_str = data.get("updated_at")
        if updated_str:
            updated_at = datetime.fromisoformat(updated_str.replace("Z", "+00:00"))

        labels: list[str] = []
        for label in data.get("labels", []):
            # The API returns either label objects or bare names
            name = label["name"] if isinstance(label, dict) else str(label)
            if name not in labels:
                labels.append(name)

        return cls(
            number=data["number"],
            title=data["title"],
            body=data.get("body") or "",
            url=data.get("html_url", ""),
            labels=labels,
            updated_at=updated_at,
        )


@dataclass
class DraftIssue:
    """A Jira issue that has not been created yet."""

    project_key: str
    summary: str
    description: str
    issue_type: str
    back_reference: str | None = None
    back_reference_field: str = DEFAULT_BACK_REFERENCE_FIELD

    def to_payload(self) -> dict[str, Any]:
        """Serialize to the Jira issue-creation request body."""
        fields: dict[str, Any] = {
            "project": {"key": self.project_key},
            "summary": self.summary,
            "description": self.description,
            "issuetype": {"name": self.issue_type},
        }
        if self.back_reference:
            fields[self.back_reference_field] = {"value": self.back_reference}
        return {"fields": fields}


@dataclass
class CreationResult:
    """Outcome of submitting one draft to Jira."""

    draft: DraftIssue
    key: str | None = None
    id: str | None = None
    self_url: str | None = None
    status_code: int | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        """Check whether Jira created the ticket.

        The key may be empty when Jira answered 201 with an unreadable body.
        """
        return self.key is not None


class SkipReason(str, Enum):
    """Why the sync gate refused an issue."""

    ALREADY_SYNCED = "already synced"
    NOT_ACCEPTED = "not accepted"


@dataclass(frozen=True)
class GateDecision:
    """Result of evaluating an issue's labels."""

    mirror: bool
    reason: SkipReason | None = None

    def __bool__(self) -> bool:
        return self.mirror


@dataclass
class BatchResult:
    """Partitioned outcomes of a batch run."""

    succeeded: list[CreationResult] = field(default_factory=list)
    failed: list[CreationResult] = field(default_factory=list)
    skipped: list[tuple[SourceIssue, SkipReason]] = field(default_factory=list)
    labeled: list[int] = field(default_factory=list)
    label_failures: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        """Number of issues the batch looked at."""
        return len(self.succeeded) + len(self.failed) + len(self.skipped)
