"""Jira Cloud REST API v3 client.

This module provides a wrapper around the Jira API for:
- Validating credentials
- Listing projects and issue types
- Creating issues and adding comments
"""

from jira_assist.jira.client import JiraAPIError, JiraClient, JiraConfigError
from jira_assist.jira.models import (
    CreatedComment,
    CreatedIssue,
    IssueCreateRequest,
    IssueTypeInfo,
    JiraConfig,
    ProjectInfo,
    to_adf,
)

__all__ = [
    "CreatedComment",
    "CreatedIssue",
    "IssueCreateRequest",
    "IssueTypeInfo",
    "JiraAPIError",
    "JiraClient",
    "JiraConfig",
    "JiraConfigError",
    "ProjectInfo",
    "to_adf",
]
