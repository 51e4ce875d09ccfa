"""Mirror accepted GitHub issues into Jira."""

__version__ = "0.1.0"
