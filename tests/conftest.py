"""Shared fixtures for gh2jira tests."""

from __future__ import annotations

import pytest

from gh2jira.config import Config
from gh2jira.sync.models import SourceIssue

BASE_ENV = {
    "GITHUB_OWNER": "octo",
    "GITHUB_REPO": "infra",
    "GITHUB_TOKEN": "gh-token",
    "JIRA_PROJECT_KEY": "PROJ",
    "JIRA_ISSUE_TYPE": "Task",
    "JIRA_HOSTNAME": "example.atlassian.net",
    "JIRA_AUTH_TOKEN": "jira-token",
    "JIRA_AUTH_EMAIL": "bot@example.com",
    "ACCEPTED_LABEL": "accepted",
    "SYNCED_LABEL": "synced",
}


def _env_names() -> list[str]:
    names = []
    for name, field in Config.model_fields.items():
        alias = field.validation_alias
        names.append(alias.upper() if isinstance(alias, str) else name.upper())
    return names


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's shell settings out of the tests."""
    for name in _env_names():
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def base_env(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set a complete configuration in the environment."""
    for name, value in BASE_ENV.items():
        monkeypatch.setenv(name, value)
    return dict(BASE_ENV)


@pytest.fixture
def config(base_env: dict[str, str]) -> Config:
    """A loaded configuration."""
    return Config.load()


def build_issue(number: int, labels: list[str], title: str = "Fix typo", body: str = "line one", updated_at: str | None = None) -> SourceIssue:
    """Build a SourceIssue pointing at the test repository."""
    return SourceIssue.from_api(
        {
            "number": number,
            "title": title,
            "body": body,
            "html_url": f"https://github.com/octo/infra/issues/{number}",
            "labels": [{"name": label} for label in labels],
            "updated_at": updated_at,
        }
    )


@pytest.fixture
def make_issue():
    """Factory for SourceIssue objects."""
    return build_issue
