"""Jira Cloud REST API v3 client.

This module provides an async wrapper around the Jira API for:
- Validating credentials
- Listing projects and the issue types of a project
- Creating issues and reading them back
- Adding comments to issues

Credentials are passed in explicitly as a JiraConfig. Requests are not
retried: an error response is raised as JiraAPIError carrying the
message Jira returned.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from jira_assist.jira.models import (
    CreatedComment,
    CreatedIssue,
    IssueCreateRequest,
    IssueTypeInfo,
    JiraConfig,
    ProjectInfo,
    to_adf,
)


logger = logging.getLogger(__name__)


API_PREFIX = "/rest/api/3"


class JiraConfigError(Exception):
    """Raised when the Jira configuration is missing a required value."""

    def __init__(self, message: str = "Jira configuration is incomplete. Please check your settings."):
        self.message = message
        super().__init__(message)


class JiraAPIError(Exception):
    """Raised when a Jira API request fails.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code from the response.
        response_body: Response body from the Jira API.
        request_url: The URL that was requested.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_url: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        self.request_url = request_url
        super().__init__(message)


def extract_error_message(response: httpx.Response) -> str:
    """Pick the most useful error message out of a Jira error response.

    Jira reports request-level problems in `errorMessages` and field-level
    problems in `errors`; the first entry of either wins, in that order.
    """
    try:
        data = response.json()
    except ValueError:
        data = None

    if isinstance(data, dict):
        messages = data.get("errorMessages") or []
        if isinstance(messages, list) and messages:
            return str(messages[0])
        errors = data.get("errors") or {}
        if isinstance(errors, dict) and errors:
            return str(next(iter(errors.values())))

    return f"Jira error {response.status_code}"


class JiraClient:
    """Async Jira API client.

    Attributes:
        config: Jira site and credentials.
        timeout: Request timeout in seconds.

    Example:
        >>> config = JiraConfig(domain="acme", email="me@acme.io", api_token="xxx")
        >>> async with JiraClient(config) as client:
        ...     issue = await client.create_issue(
        ...         IssueCreateRequest(
        ...             project_key="PROJ",
        ...             summary="Fix login",
        ...             description="Users cannot log in",
        ...             issue_type="Bug",
        ...         )
        ...     )
    """

    def __init__(
        self,
        config: JiraConfig,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the Jira client.

        Args:
            config: Jira site and credentials.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport, used to stub the server.
        """
        self.config = config
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, creating it if necessary.

        Raises:
            JiraConfigError: If the configuration is incomplete.
        """
        if not self.config.is_complete:
            raise JiraConfigError()
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.config.base_url,
                auth=httpx.BasicAuth(self.config.email, self.config.api_token),
                headers={
                    "Accept": "application/json",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "JiraClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        json_data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """Make a single HTTP request to the Jira API.

        Args:
            method: HTTP method.
            path: API path below /rest/api/3 (e.g. /issue).
            json_data: Optional JSON body for the request.
            params: Optional query parameters.

        Returns:
            The successful HTTP response.

        Raises:
            JiraConfigError: If the configuration is incomplete.
            JiraAPIError: On transport failure or an error response.
        """
        url = f"{API_PREFIX}{path}"
        try:
            response = await self.client.request(
                method=method,
                url=url,
                json=json_data,
                params=params,
            )
        except httpx.HTTPError as e:
            logger.error(
                "Jira request failed",
                extra={"path": url, "method": method, "error": str(e)},
            )
            raise JiraAPIError(
                message=f"Jira request failed: {str(e) or type(e).__name__}",
                request_url=f"{self.config.base_url}{url}",
            )

        if response.status_code >= 400:
            error_body = response.text
            logger.error(
                "Jira API error",
                extra={
                    "status_code": response.status_code,
                    "path": url,
                    "method": method,
                    "response_body": error_body[:500],
                },
            )
            raise JiraAPIError(
                message=extract_error_message(response),
                status_code=response.status_code,
                response_body=error_body,
                request_url=str(response.url),
            )

        return response

    def _json(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            raise JiraAPIError(
                message="Jira returned a response that is not JSON",
                status_code=response.status_code,
                response_body=response.text,
                request_url=str(response.url),
            )

    async def validate_credentials(self) -> bool:
        """Check the credentials by fetching the current user.

        Returns:
            True if Jira accepted the credentials, False otherwise.
        """
        try:
            await self._request("GET", "/myself")
        except (JiraAPIError, JiraConfigError) as e:
            logger.warning(
                "Jira credential validation failed",
                extra={"domain": self.config.domain, "error": str(e)},
            )
            return False
        return True

    async def get_issue_types(self, project_key: str) -> List[IssueTypeInfo]:
        """List the issue types available in a project.

        Args:
            project_key: Key of the project.

        Returns:
            Issue types in the order Jira reports them.

        Raises:
            JiraAPIError: If the request fails.
        """
        response = await self._request(
            "GET",
            "/issuetype/search",
            params={"projectKey": project_key},
        )
        data = self._json(response)
        # Older sites answer with a bare list instead of a paginated object
        if isinstance(data, dict):
            values = data.get("values") or []
        elif isinstance(data, list):
            values = data
        else:
            values = []
        return [
            IssueTypeInfo(id=str(item["id"]), name=str(item["name"]))
            for item in values
            if isinstance(item, dict) and "id" in item and "name" in item
        ]

    async def list_projects(self) -> List[ProjectInfo]:
        """List projects visible to the configured account.

        Raises:
            JiraAPIError: If the request fails.
        """
        response = await self._request("GET", "/project/search")
        data = self._json(response)
        values = data.get("values", []) if isinstance(data, dict) else []
        projects = []
        for item in values:
            try:
                projects.append(
                    ProjectInfo(id=str(item["id"]), key=item["key"], name=item["name"])
                )
            except (KeyError, TypeError, ValidationError) as e:
                logger.warning("Skipping malformed project entry", extra={"error": str(e)})
        return projects

    async def create_issue(self, request: IssueCreateRequest) -> CreatedIssue:
        """Create an issue.

        The description is sent as an ADF document.

        Args:
            request: Issue fields.

        Returns:
            Key, id and browser URL of the new issue.

        Raises:
            JiraConfigError: If the configuration is incomplete.
            JiraAPIError: If Jira rejects the issue.
        """
        logger.info(
            "Creating Jira issue",
            extra={
                "project_key": request.project_key,
                "issue_type": request.issue_type,
                "summary_length": len(request.summary),
            },
        )

        response = await self._request(
            "POST",
            "/issue",
            json_data={"fields": request.to_jira_fields()},
        )
        data = self._json(response)
        try:
            issue = CreatedIssue.from_jira_response(data, self.config)
        except (KeyError, TypeError) as e:
            raise JiraAPIError(
                message=f"Jira create response missing field: {e}",
                status_code=response.status_code,
                response_body=response.text,
            )

        logger.info(
            "Jira issue created",
            extra={"issue_key": issue.key, "issue_id": issue.id},
        )
        return issue

    async def get_issue(self, issue_key: str) -> Dict[str, Any]:
        """Fetch an issue.

        Raises:
            JiraAPIError: If the issue does not exist or the request fails.
        """
        response = await self._request("GET", f"/issue/{issue_key}")
        return self._json(response)

    async def add_comment(self, issue_key: str, body: str) -> CreatedComment:
        """Add a comment to an issue.

        Args:
            issue_key: Key of the issue (e.g. PROJ-12).
            body: Plain-text comment, converted to ADF.

        Returns:
            The created comment's id and issue key.

        Raises:
            JiraAPIError: If the request fails.
        """
        logger.info(
            "Adding comment to Jira issue",
            extra={"issue_key": issue_key, "body_length": len(body)},
        )

        response = await self._request(
            "POST",
            f"/issue/{issue_key}/comment",
            json_data={"body": to_adf(body)},
        )
        data = self._json(response)
        comment_id = data.get("id") if isinstance(data, dict) else None
        if comment_id is None:
            raise JiraAPIError(
                message="Jira comment response missing id",
                status_code=response.status_code,
                response_body=response.text,
            )
        return CreatedComment(id=str(comment_id), issue_key=issue_key)
