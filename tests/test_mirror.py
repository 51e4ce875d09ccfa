"""Tests for the mirror coordinator.

Tests cover:
- Single-issue mode: mirror, skip, create failure, label failure
- Batch mode: partitioned results, label commit only for successes,
  per-item isolation
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from gh2jira.config import Config
from gh2jira.exceptions import NotFoundError, TransportError
from gh2jira.sync.github_client import GitHubClient
from gh2jira.sync.jira_client import JiraClient
from gh2jira.sync.mirror import IssueMirror
from gh2jira.sync.models import CreationResult, SkipReason

SINCE = datetime(2024, 5, 1, tzinfo=timezone.utc)


def _created(key: str) -> httpx.Response:
    return httpx.Response(201, json={"id": "1", "key": key, "self": f"https://example.atlassian.net/rest/api/2/issue/{key}"})


async def _success(draft) -> CreationResult:
    return CreationResult(draft=draft, key="PROJ-1", status_code=201)


class TestIssueMirrorContext:
    """Test mirror lifecycle."""

    def test_properties_outside_context_raise(self, config: Config) -> None:
        """Test property access outside the context raises."""
        mirror = IssueMirror(config)
        with pytest.raises(RuntimeError, match="must be used as async context manager"):
            _ = mirror.github

    @pytest.mark.asyncio
    async def test_clients_built_from_config(self, config: Config) -> None:
        """Test clients are built from the config and released."""
        async with IssueMirror(config) as mirror:
            assert mirror.github.repo == "octo/infra"
            assert mirror.jira.hostname == "example.atlassian.net"
            assert mirror.labels.synced_label == "synced"

        assert mirror._github is None
        assert mirror._jira is None

    @pytest.mark.asyncio
    async def test_github_client_closed_when_jira_setup_fails(self, config: Config) -> None:
        """Test the GitHub client is closed if Jira setup fails."""
        with (
            patch.object(JiraClient, "__aenter__", new_callable=AsyncMock, side_effect=RuntimeError("no jira")),
            patch("httpx.AsyncClient.aclose", new_callable=AsyncMock) as aclose,
        ):
            mirror = IssueMirror(config)
            with pytest.raises(RuntimeError, match="no jira"):
                async with mirror:
                    pass

        aclose.assert_awaited_once()
        assert mirror._github is None
        assert mirror._jira is None


# =============================================================================
# Single-Issue Mode Tests
# =============================================================================


class TestSyncIssue:
    """Test mirroring one named issue."""

    @pytest.mark.asyncio
    async def test_accepted_issue_is_mirrored_and_labeled(self, config: Config, make_issue) -> None:
        """Test an accepted issue is created and labeled."""
        issue = make_issue(1, ["accepted"], title="Fix typo", body="line one")

        with (
            patch.object(GitHubClient, "get_issue", new_callable=AsyncMock, return_value=issue),
            patch.object(GitHubClient, "add_labels", new_callable=AsyncMock, return_value=["accepted", "synced"]) as add_labels,
            patch("httpx.AsyncClient.post", new_callable=AsyncMock, return_value=_created("PROJ-7")) as mock_post,
        ):
            async with IssueMirror(config) as mirror:
                outcome = await mirror.sync_issue(1)

        assert outcome.decision.mirror is True
        assert outcome.result.key == "PROJ-7"
        assert outcome.labeled is True
        assert outcome.failed is False

        mock_post.assert_awaited_once()
        fields = json.loads(mock_post.call_args.kwargs["content"])["fields"]
        assert fields["description"].startswith("GitHub issue: https://github.com/octo/infra/issues/1\n\n---\n\nline one")
        assert fields["summary"] == "Fix typo"
        assert "customfield_10016" not in fields
        add_labels.assert_awaited_once_with(1, ["synced"])

    @pytest.mark.parametrize(
        ("labels", "reason"),
        [
            (["accepted", "synced"], SkipReason.ALREADY_SYNCED),
            ([], SkipReason.NOT_ACCEPTED),
        ],
    )
    @pytest.mark.asyncio
    async def test_gate_skip_never_calls_jira(self, config: Config, make_issue, labels: list[str], reason: SkipReason) -> None:
        """Test skipped issues never reach Jira."""
        with (
            patch.object(GitHubClient, "get_issue", new_callable=AsyncMock, return_value=make_issue(1, labels)),
            patch.object(GitHubClient, "add_labels", new_callable=AsyncMock) as add_labels,
            patch.object(JiraClient, "create_issue", new_callable=AsyncMock) as create_issue,
        ):
            async with IssueMirror(config) as mirror:
                outcome = await mirror.sync_issue(1)

        assert outcome.decision.reason is reason
        assert outcome.result is None
        create_issue.assert_not_awaited()
        add_labels.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_create_failure_leaves_label_untouched(self, config: Config, make_issue) -> None:
        """Test a failed creation writes no label."""
        with (
            patch.object(GitHubClient, "get_issue", new_callable=AsyncMock, return_value=make_issue(1, ["accepted"])),
            patch.object(GitHubClient, "add_labels", new_callable=AsyncMock) as add_labels,
            patch("httpx.AsyncClient.post", new_callable=AsyncMock, return_value=httpx.Response(500, text="boom")),
        ):
            async with IssueMirror(config) as mirror:
                outcome = await mirror.sync_issue(1)

        assert outcome.failed is True
        add_labels.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_label_failure_is_not_fatal(self, config: Config, make_issue) -> None:
        """Test a failed label write keeps the created result."""
        with (
            patch.object(GitHubClient, "get_issue", new_callable=AsyncMock, return_value=make_issue(1, ["accepted"])),
            patch.object(GitHubClient, "add_labels", new_callable=AsyncMock, side_effect=TransportError("GitHub API error 500")),
            patch("httpx.AsyncClient.post", new_callable=AsyncMock, return_value=_created("PROJ-7")),
        ):
            async with IssueMirror(config) as mirror:
                outcome = await mirror.sync_issue(1)

        assert outcome.result.success is True
        assert outcome.labeled is False

    @pytest.mark.asyncio
    async def test_unreadable_label_response_is_not_fatal(self, config: Config, make_issue) -> None:
        """Test an unreadable label response keeps the created result."""
        with (
            patch.object(GitHubClient, "get_issue", new_callable=AsyncMock, return_value=make_issue(1, ["accepted"])),
            patch("httpx.AsyncClient.request", new_callable=AsyncMock, return_value=httpx.Response(200, text="<html>proxy</html>")),
            patch("httpx.AsyncClient.post", new_callable=AsyncMock, return_value=_created("PROJ-7")),
        ):
            async with IssueMirror(config) as mirror:
                outcome = await mirror.sync_issue(1)

        assert outcome.result.key == "PROJ-7"
        assert outcome.labeled is False

    @pytest.mark.asyncio
    async def test_missing_issue_propagates(self, config: Config) -> None:
        """Test a missing issue is raised to the caller."""
        with patch.object(GitHubClient, "get_issue", new_callable=AsyncMock, side_effect=NotFoundError("missing")):
            async with IssueMirror(config) as mirror:
                with pytest.raises(NotFoundError):
                    await mirror.sync_issue(404)


# =============================================================================
# Batch Mode Tests
# =============================================================================


class TestSyncBatch:
    """Test mirroring every newly accepted issue."""

    @pytest.mark.asyncio
    async def test_partitions_results_and_labels_only_successes(self, config: Config, make_issue) -> None:
        """Test results are partitioned and only successes labeled."""
        issues = [
            make_issue(3, ["accepted"], title="Third"),
            make_issue(2, ["accepted", "synced"], title="Second"),
            make_issue(1, ["accepted"], title="First"),
        ]

        with (
            patch.object(GitHubClient, "list_issues", new_callable=AsyncMock, return_value=issues) as list_issues,
            patch.object(GitHubClient, "add_labels", new_callable=AsyncMock, return_value=["accepted", "synced"]) as add_labels,
            patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post,
        ):
            mock_post.side_effect = [_created("PROJ-8"), httpx.Response(500, text="boom")]

            async with IssueMirror(config) as mirror:
                batch = await mirror.sync_batch(since=SINCE, per_page=10)

        list_issues.assert_awaited_once_with("accepted", since=SINCE, per_page=10)
        assert [result.key for result in batch.succeeded] == ["PROJ-8"]
        assert [result.draft.summary for result in batch.failed] == ["First"]
        assert [(issue.number, reason) for issue, reason in batch.skipped] == [(2, SkipReason.ALREADY_SYNCED)]
        assert batch.labeled == [3]
        add_labels.assert_awaited_once_with(3, ["synced"])

        # Batch drafts carry the back reference
        fields = json.loads(mock_post.call_args_list[0].kwargs["content"])["fields"]
        assert fields["customfield_10016"] == {"value": "https://github.com/octo/infra/issues/3"}

    @pytest.mark.asyncio
    async def test_empty_batch_is_nothing_to_do(self, config: Config) -> None:
        """Test an empty listing creates nothing."""
        with (
            patch.object(GitHubClient, "list_issues", new_callable=AsyncMock, return_value=[]),
            patch.object(JiraClient, "create_issue", new_callable=AsyncMock) as create_issue,
        ):
            async with IssueMirror(config) as mirror:
                batch = await mirror.sync_batch(since=SINCE, per_page=30)

        assert batch.total == 0
        create_issue.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_item_errors_are_isolated(self, config: Config, make_issue) -> None:
        """Test a create error fails only its own issue."""
        issues = [make_issue(2, ["accepted"], title="Broken"), make_issue(1, ["accepted"], title="Fine")]

        with (
            patch.object(GitHubClient, "list_issues", new_callable=AsyncMock, return_value=issues),
            patch.object(GitHubClient, "add_labels", new_callable=AsyncMock, return_value=["synced"]),
            patch.object(JiraClient, "create_issue", new_callable=AsyncMock) as create_issue,
        ):

            async def create(draft):
                if draft.summary == "Broken":
                    raise httpx.ReadTimeout("timed out")
                return await _success(draft)

            create_issue.side_effect = create

            async with IssueMirror(config) as mirror:
                batch = await mirror.sync_batch(since=SINCE, per_page=30)

        assert [result.draft.summary for result in batch.failed] == ["Broken"]
        assert "timed out" in batch.failed[0].error
        assert [result.draft.summary for result in batch.succeeded] == ["Fine"]
        assert batch.labeled == [1]

    @pytest.mark.asyncio
    async def test_translation_error_is_isolated(self, config: Config, make_issue) -> None:
        """Test a translation error fails only its own issue."""
        issues = [make_issue(2, ["accepted"], title="Broken"), make_issue(1, ["accepted"], title="Fine")]

        def translate(issue, source_label="GitHub issue"):
            if issue.title == "Broken":
                raise ValueError("bad body")
            return "ok"

        with (
            patch.object(GitHubClient, "list_issues", new_callable=AsyncMock, return_value=issues),
            patch.object(GitHubClient, "add_labels", new_callable=AsyncMock, return_value=["synced"]),
            patch("gh2jira.sync.translator.translate", side_effect=translate),
            patch("httpx.AsyncClient.post", new_callable=AsyncMock, return_value=_created("PROJ-9")),
        ):
            async with IssueMirror(config) as mirror:
                batch = await mirror.sync_batch(since=SINCE, per_page=30)

        assert len(batch.failed) == 1
        assert "bad body" in batch.failed[0].error
        assert batch.failed[0].draft.back_reference == "https://github.com/octo/infra/issues/2"
        assert batch.labeled == [1]

    @pytest.mark.asyncio
    async def test_unparsable_back_reference_does_not_abort(self, config: Config, make_issue) -> None:
        """Test an unusable back reference only skips its label."""
        broken = make_issue(5, ["accepted"], title="No URL")
        broken.url = "https://github.com/octo/infra/issues/"
        issues = [broken, make_issue(4, ["accepted"], title="Good")]

        with (
            patch.object(GitHubClient, "list_issues", new_callable=AsyncMock, return_value=issues),
            patch.object(GitHubClient, "add_labels", new_callable=AsyncMock, return_value=["synced"]) as add_labels,
            patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post,
        ):
            mock_post.side_effect = [_created("PROJ-1"), _created("PROJ-2")]

            async with IssueMirror(config) as mirror:
                batch = await mirror.sync_batch(since=SINCE, per_page=30)

        assert len(batch.succeeded) == 2
        assert batch.labeled == [4]
        assert batch.label_failures == ["https://github.com/octo/infra/issues/"]
        add_labels.assert_awaited_once_with(4, ["synced"])

    @pytest.mark.asyncio
    async def test_unreadable_label_response_does_not_abort(self, config: Config, make_issue) -> None:
        """Test unreadable label responses leave every creation recorded."""
        issues = [make_issue(2, ["accepted"], title="Second"), make_issue(1, ["accepted"], title="First")]

        with (
            patch.object(GitHubClient, "list_issues", new_callable=AsyncMock, return_value=issues),
            patch("httpx.AsyncClient.request", new_callable=AsyncMock, return_value=httpx.Response(200, text="<html>proxy</html>")) as mock_request,
            patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post,
        ):
            mock_post.side_effect = [_created("PROJ-2"), _created("PROJ-1")]

            async with IssueMirror(config) as mirror:
                batch = await mirror.sync_batch(since=SINCE, per_page=30)

        assert [result.key for result in batch.succeeded] == ["PROJ-2", "PROJ-1"]
        assert batch.labeled == []
        assert batch.label_failures == ["https://github.com/octo/infra/issues/2", "https://github.com/octo/infra/issues/1"]
        assert mock_request.await_count == 2

    @pytest.mark.asyncio
    async def test_list_failure_propagates(self, config: Config) -> None:
        """Test a failed listing is raised to the caller."""
        with patch.object(GitHubClient, "list_issues", new_callable=AsyncMock, side_effect=TransportError("down")):
            async with IssueMirror(config) as mirror:
                with pytest.raises(TransportError):
                    await mirror.sync_batch(since=SINCE, per_page=30)
