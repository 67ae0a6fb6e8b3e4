"""Command-line tool for Jira Assist.

Usage:
    jira-assist validate --domain acme --email you@acme.io --token xxx
    jira-assist create --project PROJ --summary "Fix login bug" \\
        --description "Users can't log in" --type Bug
    jira-assist list-types --project PROJ
    jira-assist list-projects
    jira-assist comment --issue PROJ-12 --body "Deployed to staging"
    jira-assist enhance --description "users cannot log in, please fix"
    jira-assist enhance --title "Login" --description "..." --create --project PROJ
    jira-assist ollama-check

Credentials default to JIRA_DOMAIN, JIRA_EMAIL and JIRA_TOKEN from the
environment (or .env) and can be overridden per call.

Exit Codes:
    0 - Success
    1 - Failure, invalid arguments or unknown command
"""

import argparse
import asyncio
import sys
from typing import Awaitable, Callable, Dict, List, Optional

import structlog
from pydantic import ValidationError

from jira_assist.config import Settings, get_settings
from jira_assist.enhancer.models import EnhancementRequest
from jira_assist.enhancer.orchestrator import IssueEnhancer
from jira_assist.jira.client import JiraAPIError, JiraClient, JiraConfigError
from jira_assist.jira.models import IssueCreateRequest, JiraConfig
from jira_assist.logs import configure_logging
from jira_assist.ollama.client import GenerationServiceError, OllamaClient

logger = structlog.get_logger()


def _add_credential_arguments(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group("credentials")
    group.add_argument("--domain", help="Jira domain (e.g. acme for acme.atlassian.net)")
    group.add_argument("--email", help="Atlassian account email")
    group.add_argument("--token", help="Jira API token")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with one subcommand per operation."""
    parser = argparse.ArgumentParser(
        prog="jira-assist",
        description="Create Jira issues and enhance their text from the command line.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log debug output to stderr",
    )
    subparsers = parser.add_subparsers(dest="command", metavar="<command>")

    validate = subparsers.add_parser("validate", help="Validate Jira credentials")
    _add_credential_arguments(validate)

    create = subparsers.add_parser("create", help="Create a new Jira issue")
    _add_credential_arguments(create)
    create.add_argument("--project", required=True, help="Project key (e.g. PROJ)")
    create.add_argument("--summary", required=True, help="Issue summary (title)")
    create.add_argument("--description", required=True, help="Issue description")
    create.add_argument("--type", required=True, dest="issue_type", help="Issue type (e.g. Bug, Task, Story)")

    list_types = subparsers.add_parser("list-types", help="List issue types for a project")
    _add_credential_arguments(list_types)
    list_types.add_argument("--project", required=True, help="Project key")

    list_projects = subparsers.add_parser("list-projects", help="List visible projects")
    _add_credential_arguments(list_projects)

    comment = subparsers.add_parser("comment", help="Add a comment to an issue")
    _add_credential_arguments(comment)
    comment.add_argument("--issue", required=True, help="Issue key (e.g. PROJ-12)")
    comment.add_argument("--body", required=True, help="Comment text")

    enhance = subparsers.add_parser("enhance", help="Enhance an issue title and description")
    _add_credential_arguments(enhance)
    enhance.add_argument("--title", default=None, help="Raw issue title")
    enhance.add_argument("--description", default="", help="Raw issue description")
    enhance.add_argument("--model", default=None, help="Ollama model to use")
    enhance.add_argument(
        "--create",
        action="store_true",
        help="Create the enhanced issue in Jira",
    )
    enhance.add_argument("--project", help="Project key, required with --create")
    enhance.add_argument(
        "--type",
        dest="issue_type",
        default=None,
        help="Issue type for --create (default: the suggested type)",
    )

    ollama_check = subparsers.add_parser("ollama-check", help="Check Ollama and list local models")
    ollama_check.add_argument("--url", default=None, help="Ollama API base URL")

    return parser


def _jira_config(args: argparse.Namespace, settings: Settings) -> JiraConfig:
    return JiraConfig(
        domain=args.domain or settings.jira_domain,
        email=args.email or settings.jira_email,
        api_token=args.token or settings.jira_token,
    )


def _error(message: str) -> None:
    print(f"Error: {message}", file=sys.stderr)


async def cmd_validate(args: argparse.Namespace, settings: Settings) -> bool:
    config = _jira_config(args, settings)
    if not config.is_complete:
        _error("Missing required parameters: --domain, --email, --token")
        return False

    print("Validating Jira configuration...")
    async with JiraClient(config, timeout=settings.jira_timeout_seconds) as client:
        valid = await client.validate_credentials()

    if valid:
        print("Configuration is valid.")
    else:
        _error("Configuration is invalid. Check your credentials.")
    return valid


async def cmd_create(args: argparse.Namespace, settings: Settings) -> bool:
    config = _jira_config(args, settings)
    request = IssueCreateRequest(
        project_key=args.project,
        summary=args.summary,
        description=args.description,
        issue_type=args.issue_type,
    )

    print("Creating Jira issue...")
    async with JiraClient(config, timeout=settings.jira_timeout_seconds) as client:
        issue = await client.create_issue(request)

    print("Issue created successfully.")
    print(f"  Key: {issue.key}")
    print(f"  ID: {issue.id}")
    print(f"  URL: {issue.url}")
    return True


async def cmd_list_types(args: argparse.Namespace, settings: Settings) -> bool:
    config = _jira_config(args, settings)

    print(f"Fetching issue types for project {args.project}...")
    async with JiraClient(config, timeout=settings.jira_timeout_seconds) as client:
        types = await client.get_issue_types(args.project)

    if not types:
        print("No issue types found.")
        return True

    print("Available issue types:")
    for issue_type in types:
        print(f"  - {issue_type.name} (ID: {issue_type.id})")
    return True


async def cmd_list_projects(args: argparse.Namespace, settings: Settings) -> bool:
    config = _jira_config(args, settings)

    async with JiraClient(config, timeout=settings.jira_timeout_seconds) as client:
        projects = await client.list_projects()

    if not projects:
        print("No projects found.")
        return True

    print("Projects:")
    for project in projects:
        print(f"  - {project.key}: {project.name} (ID: {project.id})")
    return True


async def cmd_comment(args: argparse.Namespace, settings: Settings) -> bool:
    config = _jira_config(args, settings)

    async with JiraClient(config, timeout=settings.jira_timeout_seconds) as client:
        comment = await client.add_comment(args.issue, args.body)

    print(f"Comment {comment.id} added to {comment.issue_key}.")
    return True


async def cmd_enhance(args: argparse.Namespace, settings: Settings) -> bool:
    if args.create and not args.project:
        _error("--project is required with --create")
        return False

    request = EnhancementRequest(
        title=args.title,
        description=args.description or "",
        model_hint=args.model,
    )

    ollama_client = None
    if settings.generation_enabled:
        ollama_client = OllamaClient(
            base_url=settings.ollama_url,
            chat_timeout=settings.ollama_timeout_seconds,
            probe_timeout=settings.ollama_probe_timeout_seconds,
        )

    enhancer = IssueEnhancer(
        generation_client=ollama_client,
        default_model=settings.ollama_model,
        temperature=settings.ollama_temperature,
    )
    try:
        result = await enhancer.enhance(request)
    finally:
        if ollama_client is not None:
            await ollama_client.close()

    print(f"Title: {result.enhanced_title}")
    print(f"Suggested type: {result.suggested_type.value}")
    print(f"Source: {result.source.value}")
    if result.warning:
        print(f"Warning: {result.warning}")
    print()
    print(result.enhanced_description)

    if not args.create:
        return True

    config = _jira_config(args, settings)
    create_request = IssueCreateRequest(
        project_key=args.project,
        summary=result.enhanced_title,
        description=result.enhanced_description,
        issue_type=args.issue_type or result.suggested_type.value,
    )
    async with JiraClient(config, timeout=settings.jira_timeout_seconds) as client:
        issue = await client.create_issue(create_request)

    print()
    print(f"Issue created: {issue.key} {issue.url}")
    return True


async def cmd_ollama_check(args: argparse.Namespace, settings: Settings) -> bool:
    base_url = args.url or settings.ollama_url

    print(f"Checking Ollama at {base_url}...")
    async with OllamaClient(
        base_url=base_url,
        probe_timeout=max(settings.ollama_probe_timeout_seconds, 3.0),
    ) as client:
        if not await client.ping():
            _error("Ollama is not responding. Start it with: ollama serve")
            return False
        print("Ollama server is running.")
        models = await client.list_models()

    if not models:
        print("No models found. Download one with: ollama pull mistral")
        return False

    print(f"Found {len(models)} model(s):")
    for model in models:
        print(f"  - {model.name}")
        print(f"      Size: {model.size_gb:.2f} GB")
        modified = model.modified_at.strftime("%Y-%m-%d %H:%M:%S") if model.modified_at else "unknown"
        print(f"      Modified: {modified}")
    return True


COMMANDS: Dict[str, Callable[[argparse.Namespace, Settings], Awaitable[bool]]] = {
    "validate": cmd_validate,
    "create": cmd_create,
    "list-types": cmd_list_types,
    "list-projects": cmd_list_projects,
    "comment": cmd_comment,
    "enhance": cmd_enhance,
    "ollama-check": cmd_ollama_check,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Run the command-line tool.

    Args:
        argv: Arguments without the program name; defaults to sys.argv[1:].

    Returns:
        Process exit status.
    """
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        return 0 if e.code == 0 else 1

    if args.command is None:
        parser.print_help()
        return 0

    try:
        settings = get_settings()
    except ValidationError as e:
        _error(f"Invalid configuration: {e}")
        return 1

    configure_logging("DEBUG" if args.verbose else "WARNING")

    handler = COMMANDS[args.command]
    try:
        success = asyncio.run(handler(args, settings))
    except JiraConfigError as e:
        _error(f"{e.message} Pass --domain, --email and --token or set JIRA_DOMAIN, JIRA_EMAIL and JIRA_TOKEN.")
        return 1
    except JiraAPIError as e:
        logger.debug("Jira request failed", status_code=e.status_code, request_url=e.request_url)
        _error(e.message)
        return 1
    except GenerationServiceError as e:
        _error(e.message)
        return 1
    except ValidationError as e:
        _error(str(e))
        return 1

    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
