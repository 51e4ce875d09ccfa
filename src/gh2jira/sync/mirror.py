"""GitHub to Jira mirror coordinator.

Wires the sync gate, translator, Jira writer and label committer together
for both entry points: one named issue, or every accepted issue updated
since a watermark.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

import httpx

from gh2jira.exceptions import SyncError
from gh2jira.sync.github_client import GitHubClient
from gh2jira.sync.jira_client import JiraClient
from gh2jira.sync.label_manager import LabelManager
from gh2jira.sync.models import BatchResult, CreationResult, DraftIssue, GateDecision, SourceIssue
from gh2jira.sync.translator import build_draft

if TYPE_CHECKING:
    from gh2jira.config import Config

logger = logging.getLogger(__name__)

# Errors that fail a single batch item without stopping the batch
ITEM_ERRORS = (SyncError, httpx.HTTPError, TypeError, ValueError)


@dataclass
class SyncOutcome:
    """Result of syncing one named issue."""

    issue: SourceIssue
    decision: GateDecision
    result: CreationResult | None = None
    labeled: bool = False

    @property
    def failed(self) -> bool:
        """True if the issue was eligible but Jira did not create it."""
        return self.result is not None and not self.result.success


class IssueMirror:
    """Mirrors accepted GitHub issues into Jira.

    Handles:
    - Fetching one issue or a watermark-bounded batch
    - Filtering through the label gate
    - Creating the Jira ticket
    - Committing the synced label for successful creations only
    """

    def __init__(self, config: Config) -> None:
        """Initialize the mirror.

        Args:
            config: Loaded gh2jira configuration.
        """
        self.config = config
        self._github: GitHubClient | None = None
        self._jira: JiraClient | None = None
        self._labels: LabelManager | None = None

    async def __aenter__(self) -> IssueMirror:
        """Enter async context manager."""
        self._github = GitHubClient(
            repo=self.config.repo,
            token=self.config.github_token.get_secret_value(),
            dry_run=self.config.dry_run,
            timeout=self.config.timeout,
        )
        self._jira = JiraClient(
            hostname=self.config.jira_hostname,
            auth=self.config.jira_auth(),
            dry_run=self.config.dry_run,
            timeout=self.config.timeout,
        )
        await self._github.__aenter__()
        try:
            await self._jira.__aenter__()
        except BaseException:
            await self._github.__aexit__(None, None, None)
            self._github = None
            self._jira = None
            raise

        self._labels = LabelManager(
            client=self._github,
            accepted_label=self.config.accepted_label,
            synced_label=self.config.synced_label,
        )
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        """Exit async context manager."""
        if self._jira:
            await self._jira.__aexit__(exc_type, exc_val, exc_tb)
            self._jira = None
        if self._github:
            await self._github.__aexit__(exc_type, exc_val, exc_tb)
            self._github = None
        self._labels = None

    @property
    def github(self) -> GitHubClient:
        """Get the GitHub client."""
        if self._github is None:
            raise RuntimeError("IssueMirror must be used as async context manager")
        return self._github

    @property
    def jira(self) -> JiraClient:
        """Get the Jira client."""
        if self._jira is None:
            raise RuntimeError("IssueMirror must be used as async context manager")
        return self._jira

    @property
    def labels(self) -> LabelManager:
        """Get the label manager."""
        if self._labels is None:
            raise RuntimeError("IssueMirror must be used as async context manager")
        return self._labels

    # =========================================================================
    # Entry Points
    # =========================================================================

    async def sync_issue(self, issue_number: int) -> SyncOutcome:
        """Mirror a single issue if its labels allow it.

        Args:
            issue_number: The GitHub issue number.

        Returns:
            SyncOutcome describing the decision and, if eligible, the creation.

        Raises:
            NotFoundError: If the issue does not exist.
            TransportError: If GitHub cannot be read.
        """
        issue = await self.github.get_issue(issue_number)

        decision = self.labels.decide(issue)
        if not decision:
            logger.info(f"Skipping {self.config.repo}#{issue.number}: {decision.reason.value}")
            return SyncOutcome(issue=issue, decision=decision)

        draft = self._draft(issue, with_back_reference=False)
        result = await self.jira.create_issue(draft)
        outcome = SyncOutcome(issue=issue, decision=decision, result=result)

        if result.success:
            outcome.labeled = await self.labels.commit_synced(issue.number)
        else:
            logger.error(f"Failed to create Jira issue for {self.config.repo}#{issue.number}: {result.error}")
        return outcome

    async def sync_batch(self, since: datetime, per_page: int) -> BatchResult:
        """Mirror every eligible issue updated since the watermark.

        Each issue is processed to completion before the next one. A failure
        on one issue is recorded and does not stop the others.

        Args:
            since: Watermark; only issues updated at or after it are fetched.
            per_page: Maximum number of issues to fetch.

        Returns:
            BatchResult partitioned into succeeded, failed and skipped.

        Raises:
            TransportError: If the issue list cannot be read.
        """
        issues = await self.github.list_issues(self.config.accepted_label, since=since, per_page=per_page)
        batch = BatchResult()

        if not issues:
            logger.info("No newly accepted issues, nothing to do")
            return batch

        for issue in issues:
            decision = self.labels.decide(issue)
            if not decision:
                logger.debug(f"Skipping #{issue.number}: {decision.reason.value}")
                batch.skipped.append((issue, decision.reason))
                continue

            result = await self._create_isolated(issue)
            if result.success:
                batch.succeeded.append(result)
            else:
                logger.error(f"Failed to mirror #{issue.number}: {result.error}")
                batch.failed.append(result)

        # Only successful drafts get labeled; the back reference tells us which issue
        for result in batch.succeeded:
            issue_number = await self.labels.commit_synced_url(result.draft.back_reference)
            if issue_number is None:
                batch.label_failures.append(result.draft.back_reference or result.draft.summary)
            else:
                batch.labeled.append(issue_number)

        logger.info(
            f"Batch done: {len(batch.succeeded)} created, {len(batch.failed)} failed, "
            f"{len(batch.skipped)} skipped, {len(batch.labeled)} labeled"
        )
        return batch

    # =========================================================================
    # Internal Methods
    # =========================================================================

    def _draft(self, issue: SourceIssue, with_back_reference: bool) -> DraftIssue:
        return build_draft(
            issue,
            project_key=self.config.jira_project_key,
            issue_type=self.config.jira_issue_type,
            with_back_reference=with_back_reference,
            back_reference_field=self.config.jira_back_reference_field,
        )

    async def _create_isolated(self, issue: SourceIssue) -> CreationResult:
        """Translate and submit one batch issue, converting errors into a failed result."""
        try:
            draft = self._draft(issue, with_back_reference=True)
        except ITEM_ERRORS as e:
            fallback = DraftIssue(
                project_key=self.config.jira_project_key,
                summary=issue.title,
                description="",
                issue_type=self.config.jira_issue_type,
                back_reference=issue.url,
                back_reference_field=self.config.jira_back_reference_field,
            )
            return CreationResult(draft=fallback, error=f"translation error: {e}")

        try:
            return await self.jira.create_issue(draft)
        except ITEM_ERRORS as e:
            return CreationResult(draft=draft, error=str(e))
