"""Exception hierarchy for gh2jira.

Configuration and read errors abort a run. Per-item errors in batch mode are
converted into failure entries, and label write errors are only logged.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base exception for gh2jira errors."""


class ConfigurationError(SyncError):
    """A required setting is missing or malformed."""


class TransportError(SyncError):
    """Network or HTTP failure talking to GitHub or Jira."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthError(TransportError):
    """The remote system rejected our credentials."""


class NotFoundError(SyncError):
    """Requested issue does not exist."""


class LabelWriteError(SyncError):
    """The synced label could not be written back to the source issue."""
