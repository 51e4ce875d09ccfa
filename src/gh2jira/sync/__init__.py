"""GitHub to Jira issue mirroring module."""

from gh2jira.sync.github_client import GitHubClient
from gh2jira.sync.jira_client import BasicAuth, EdgeAccess, JiraClient, TokenAuth
from gh2jira.sync.label_manager import LabelManager, issue_number_from_url, should_mirror
from gh2jira.sync.mirror import IssueMirror, SyncOutcome
from gh2jira.sync.models import BatchResult, CreationResult, DraftIssue, GateDecision, SkipReason, SourceIssue
from gh2jira.sync.translator import build_draft, translate

__all__ = [
    "BasicAuth",
    "BatchResult",
    "CreationResult",
    "DraftIssue",
    "EdgeAccess",
    "GateDecision",
    "GitHubClient",
    "IssueMirror",
    "JiraClient",
    "LabelManager",
    "SkipReason",
    "SourceIssue",
    "SyncOutcome",
    "TokenAuth",
    "build_draft",
    "issue_number_from_url",
    "should_mirror",
    "translate",
]
