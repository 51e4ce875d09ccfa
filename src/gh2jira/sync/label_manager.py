"""Label protocol for the GitHub to Jira mirror.

The labels on a GitHub issue are the only sync state: an issue is mirrored
when it carries the accepted label and not the synced label, and the synced
label is added once the Jira ticket exists.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from gh2jira.exceptions import LabelWriteError, SyncError
from gh2jira.sync.models import GateDecision, SkipReason, SourceIssue

if TYPE_CHECKING:
    from gh2jira.sync.github_client import GitHubClient

logger = logging.getLogger(__name__)


def should_mirror(labels: Iterable[str], accepted_label: str, synced_label: str) -> GateDecision:
    """Decide whether an issue with the given labels should be mirrored.

    The synced label wins over the accepted label.

    Args:
        labels: Label names currently on the issue.
        accepted_label: Label that marks an issue ready for mirroring.
        synced_label: Label that marks an issue as already mirrored.

    Returns:
        GateDecision, truthy when the issue should be mirrored.
    """
    names = set(labels)
    if synced_label in names:
        return GateDecision(mirror=False, reason=SkipReason.ALREADY_SYNCED)
    if accepted_label not in names:
        return GateDecision(mirror=False, reason=SkipReason.NOT_ACCEPTED)
    return GateDecision(mirror=True)


def issue_number_from_url(url: str | None) -> int:
    """Recover an issue number from its html URL.

    Takes the trailing path segment, e.g. ``https://github.com/o/r/issues/42``
    gives 42.

    Raises:
        LabelWriteError: If the URL has no numeric trailing segment.
    """
    if not url:
        raise LabelWriteError("Missing back reference, cannot recover issue number")

    segment = urlsplit(url).path.rstrip("/").rsplit("/", 1)[-1]
    try:
        number = int(segment)
    except ValueError:
        raise LabelWriteError(f"Cannot recover issue number from back reference {url!r}") from None
    if number <= 0:
        raise LabelWriteError(f"Cannot recover issue number from back reference {url!r}")
    return number


class LabelManager:
    """Reads and commits the mirror labels on GitHub issues."""

    def __init__(
        self,
        client: GitHubClient,
        accepted_label: str,
        synced_label: str,
    ) -> None:
        """Initialize the label manager.

        Args:
            client: GitHubClient instance for API calls.
            accepted_label: Label that marks an issue ready for mirroring.
            synced_label: Label added after a successful mirror.
        """
        self.client = client
        self.accepted_label = accepted_label
        self.synced_label = synced_label

    def decide(self, issue: SourceIssue) -> GateDecision:
        """Apply the sync gate to an issue using the configured labels."""
        return should_mirror(issue.labels, self.accepted_label, self.synced_label)

    async def commit_synced(self, issue_number: int) -> bool:
        """Add the synced label to an issue.

        Failures are logged and swallowed; the issue may then be mirrored
        again by a later run.

        Args:
            issue_number: The issue number.

        Returns:
            True if the label was written.
        """
        try:
            await self.client.add_labels(issue_number, [self.synced_label])
        except SyncError as e:
            error = LabelWriteError(f"Failed to add '{self.synced_label}' to #{issue_number}: {e}")
            logger.warning(str(error))
            return False

        logger.info(f"Marked #{issue_number} as '{self.synced_label}'")
        return True

    async def commit_synced_url(self, url: str | None) -> int | None:
        """Add the synced label to the issue a back reference points at.

        Returns:
            The issue number if the label was written, None otherwise.
        """
        try:
            issue_number = issue_number_from_url(url)
        except LabelWriteError as e:
            logger.warning(str(e))
            return None

        if await self.commit_synced(issue_number):
            return issue_number
        return None
