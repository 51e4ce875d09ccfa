"""Configuration management for gh2jira.

Settings come from environment variables (or a ``.env`` file) and may be
overridden by CLI options. Validation failures are reported as
ConfigurationError before any network call is made.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import Field, SecretStr, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from gh2jira.exceptions import ConfigurationError
from gh2jira.sync.jira_client import BasicAuth, EdgeAccess, JiraAuth, TokenAuth
from gh2jira.sync.models import DEFAULT_BACK_REFERENCE_FIELD


class Config(BaseSettings):
    """gh2jira configuration.

    Field names map to upper-case environment variables, e.g. ``github_owner``
    is read from ``GITHUB_OWNER``.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_ignore_empty=True,
        populate_by_name=True,
        extra="ignore",
    )

    # GitHub
    github_owner: str = Field(min_length=1, description="Repository owner")
    github_repo: str = Field(min_length=1, description="Repository name")
    github_token: SecretStr = Field(description="GitHub access token")
    github_issue_number: int | None = Field(default=None, gt=0, description="Issue to sync in single-issue mode")
    github_since: datetime | None = Field(default=None, description="Batch watermark (ISO-8601)")
    github_lookback_hours: float = Field(default=24.0, gt=0, description="Batch window when no watermark is set")
    github_per_page: int = Field(default=30, ge=1, le=100, description="Maximum issues fetched per batch")

    # Jira
    jira_project_key: str = Field(min_length=1, description="Target project key")
    jira_issue_type: str = Field(min_length=1, description="Target issue type name")
    jira_hostname: str = Field(min_length=1, description="Jira host, without scheme")
    jira_auth_token: SecretStr = Field(description="API token, or a pre-encoded Basic credential")
    jira_auth_email: str | None = Field(default=None, description="Account email; selects Basic auth from email and token")
    jira_back_reference_field: str = Field(default=DEFAULT_BACK_REFERENCE_FIELD, description="Custom field holding the GitHub URL")

    # Access gateway in front of Jira
    cf_access_client_id: str | None = Field(default=None, description="Access gateway client id")
    cf_access_client_secret: SecretStr | None = Field(default=None, description="Access gateway client secret")

    # Labels
    accepted_label: str = Field(min_length=1, description="Label marking issues ready to mirror")
    synced_label: str = Field(min_length=1, description="Label added once mirrored")

    # Runtime
    dry_run: bool = Field(default=False, validation_alias="GH2JIRA_DRY_RUN", description="Log writes without executing them")
    log_level: str = Field(default="INFO", validation_alias="GH2JIRA_LOG_LEVEL", description="Logging level")
    timeout: float = Field(default=30.0, gt=0, validation_alias="GH2JIRA_TIMEOUT", description="HTTP timeout in seconds")

    @model_validator(mode="after")
    def _check_edge_access_pair(self) -> Config:
        if bool(self.cf_access_client_id) != bool(self.cf_access_client_secret):
            raise ValueError("CF_ACCESS_CLIENT_ID and CF_ACCESS_CLIENT_SECRET must be set together")
        return self

    @classmethod
    def load(cls, **overrides: Any) -> Config:
        """Load configuration from the environment.

        Args:
            **overrides: Field values taking precedence over the environment.
                None values are ignored.

        Raises:
            ConfigurationError: If a required setting is missing or malformed.
        """
        values = {name: value for name, value in overrides.items() if value is not None}
        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(_describe(e)) from e

    @property
    def repo(self) -> str:
        """Repository in 'owner/repo' format."""
        return f"{self.github_owner}/{self.github_repo}"

    def issue_number(self) -> int:
        """Issue number for single-issue mode.

        Raises:
            ConfigurationError: If GITHUB_ISSUE_NUMBER is not set.
        """
        if self.github_issue_number is None:
            raise ConfigurationError("GITHUB_ISSUE_NUMBER not set")
        return self.github_issue_number

    def watermark(self, now: datetime | None = None) -> datetime:
        """Resolve the batch 'since' timestamp.

        Uses GITHUB_SINCE when set, otherwise ``now`` minus the lookback window.
        """
        if self.github_since is not None:
            since = self.github_since
            return since if since.tzinfo else since.replace(tzinfo=timezone.utc)
        if now is None:
            now = datetime.now(timezone.utc)
        return now - timedelta(hours=self.github_lookback_hours)

    def jira_auth(self) -> JiraAuth:
        """Build the Jira authentication strategy.

        An email selects Basic auth from email and token; without one the
        token is used as a pre-encoded credential.
        """
        token = self.jira_auth_token.get_secret_value()
        auth: JiraAuth = BasicAuth(self.jira_auth_email, token) if self.jira_auth_email else TokenAuth(token)

        if self.cf_access_client_id and self.cf_access_client_secret:
            auth = EdgeAccess(
                inner=auth,
                client_id=self.cf_access_client_id,
                client_secret=self.cf_access_client_secret.get_secret_value(),
            )
        return auth


def _describe(error: ValidationError) -> str:
    problems = []
    for item in error.errors():
        name = ".".join(str(part) for part in item["loc"]).upper() or "configuration"
        if item["type"] == "missing":
            problems.append(f"{name} not set")
        else:
            problems.append(f"{name}: {item['msg']}")
    return "; ".join(problems)
