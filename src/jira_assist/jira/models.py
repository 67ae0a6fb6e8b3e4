"""Jira data models.

This module defines the credentials snapshot passed to every Jira call,
the issue creation request, and the small result records returned by
the client. It also builds Atlassian Document Format (ADF) bodies from
plain text, which Jira REST API v3 requires for descriptions and
comments.
"""

import re
from typing import Any, Dict, List

from pydantic import BaseModel, Field, field_validator


_PARAGRAPH_BREAK = re.compile(r"\n[ \t]*\n+")


class JiraConfig(BaseModel):
    """Jira site and credentials.

    Attributes:
        domain: Site name (acme for acme.atlassian.net) or a full base URL.
        email: Atlassian account email used for Basic auth.
        api_token: Jira API token.
    """

    domain: str = Field(default="", description="Jira site name or base URL")
    email: str = Field(default="", description="Atlassian account email")
    api_token: str = Field(default="", description="Jira API token")

    @field_validator("domain", "email", "api_token")
    @classmethod
    def strip_value(cls, v: str) -> str:
        return v.strip()

    @property
    def is_complete(self) -> bool:
        """True when domain, email and token are all set."""
        return bool(self.domain and self.email and self.api_token)

    @property
    def base_url(self) -> str:
        """Base URL of the Jira site."""
        if self.domain.startswith(("http://", "https://")):
            return self.domain.rstrip("/")
        return f"https://{self.domain}.atlassian.net"

    def browse_url(self, issue_key: str) -> str:
        """Build the browser URL of an issue."""
        return f"{self.base_url}/browse/{issue_key}"


class IssueCreateRequest(BaseModel):
    """Fields needed to create a Jira issue.

    Attributes:
        project_key: Key of the target project (e.g. PROJ).
        summary: Issue summary (title).
        description: Plain-text description, converted to ADF on send.
        issue_type: Issue type name (e.g. Story, Bug).
    """

    project_key: str = Field(..., min_length=1, description="Target project key")
    summary: str = Field(..., min_length=1, description="Issue summary")
    description: str = Field(default="", description="Plain-text description")
    issue_type: str = Field(..., min_length=1, description="Issue type name")

    @field_validator("project_key", "summary", "issue_type")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Validate that required text fields are not whitespace only."""
        if not v.strip():
            raise ValueError("value cannot be blank")
        return v.strip()

    def to_jira_fields(self) -> Dict[str, Any]:
        """Build the `fields` object of the create-issue payload."""
        return {
            "project": {"key": self.project_key},
            "summary": self.summary,
            "description": to_adf(self.description),
            "issuetype": {"name": self.issue_type},
        }


class CreatedIssue(BaseModel):
    """An issue created in Jira."""

    key: str
    id: str
    url: str

    @classmethod
    def from_jira_response(cls, data: Dict[str, Any], config: JiraConfig) -> "CreatedIssue":
        """Build from the create-issue response body."""
        key = str(data["key"])
        return cls(key=key, id=str(data["id"]), url=config.browse_url(key))

    def to_dict(self) -> Dict[str, str]:
        return {"key": self.key, "id": self.id, "url": self.url}


class IssueTypeInfo(BaseModel):
    """An issue type available in a project."""

    id: str
    name: str


class ProjectInfo(BaseModel):
    """A Jira project visible to the configured account."""

    id: str
    key: str
    name: str


class CreatedComment(BaseModel):
    """A comment added to an issue."""

    id: str
    issue_key: str

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "issueKey": self.issue_key}


def _paragraph(text: str) -> Dict[str, Any]:
    content: List[Dict[str, Any]] = []
    for index, line in enumerate(text.split("\n")):
        if index:
            content.append({"type": "hardBreak"})
        if line:
            content.append({"type": "text", "text": line})
    return {"type": "paragraph", "content": content}


def to_adf(text: str) -> Dict[str, Any]:
    """Convert plain text to an Atlassian Document Format document.

    Blank lines separate paragraphs; single newlines inside a paragraph
    become hard breaks. Empty text yields a document with no content.

    Args:
        text: Plain text to convert.

    Returns:
        ADF document dictionary.

    Example:
        >>> to_adf("one\\ntwo")["content"][0]["content"][1]
        {'type': 'hardBreak'}
    """
    normalized = (text or "").replace("\r\n", "\n").strip()
    paragraphs = [p for p in _PARAGRAPH_BREAK.split(normalized) if p.strip()]
    return {
        "version": 1,
        "type": "doc",
        "content": [_paragraph(p.strip("\n")) for p in paragraphs],
    }
