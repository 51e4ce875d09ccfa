"""Translate GitHub issue Markdown into Jira wiki markup.

Only a fixed set of tokens is rewritten. Replacements are applied in order,
and the ``hcl`` fence must be handled before the bare fence because the bare
fence is a prefix of it.
"""

from __future__ import annotations

from gh2jira.sync.models import DEFAULT_BACK_REFERENCE_FIELD, DraftIssue, SourceIssue

DEFAULT_SOURCE_LABEL = "GitHub issue"
CHECKMARK = "✅ "
JIRA_CODE_TOKEN = "{code}"

REPLACEMENTS: tuple[tuple[str, str], ...] = (
    ("- [X] ", CHECKMARK),
    ("###", "h3."),
    ("```hcl", JIRA_CODE_TOKEN),
    ("```", JIRA_CODE_TOKEN),
)


def header(url: str, source_label: str = DEFAULT_SOURCE_LABEL) -> str:
    """Build the back-link header placed above the translated body."""
    return f"{source_label}: {url}\n\n---\n\n"


def convert_markup(text: str) -> str:
    """Apply the Markdown to Jira replacements to a block of text."""
    for pattern, replacement in REPLACEMENTS:
        text = text.replace(pattern, replacement)
    return text


def translate(issue: SourceIssue, source_label: str = DEFAULT_SOURCE_LABEL) -> str:
    """Build the Jira description for an issue.

    Args:
        issue: The GitHub issue to translate.
        source_label: Prefix for the back-link line.

    Returns:
        Header plus the body with checkboxes, headings and code fences rewritten.
    """
    return convert_markup(header(issue.url, source_label) + issue.body)


def build_draft(
    issue: SourceIssue,
    project_key: str,
    issue_type: str,
    with_back_reference: bool = False,
    back_reference_field: str = DEFAULT_BACK_REFERENCE_FIELD,
) -> DraftIssue:
    """Map an issue onto a Jira draft."""
    return DraftIssue(
        project_key=project_key,
        summary=issue.title,
        description=translate(issue),
        issue_type=issue_type,
        back_reference=issue.url if with_back_reference else None,
        back_reference_field=back_reference_field,
    )
