"""FastAPI application entry point for Jira Assist.

This module provides the web API used by the browser front end: Jira
configuration and issue creation, plus issue text enhancement through a
local Ollama model with a rule-based fallback.

Jira credentials are held in memory by the server. They start from the
environment and can be replaced through POST /api/config; every Jira
call gets the current snapshot passed in explicitly.
"""

from contextlib import asynccontextmanager
from typing import Awaitable, Callable, Optional, TypeVar

import structlog
from fastapi import FastAPI, HTTPException
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from jira_assist.config import Settings, get_settings
from jira_assist.enhancer.models import EnhancementRequest
from jira_assist.enhancer.orchestrator import IssueEnhancer
from jira_assist.jira.client import JiraAPIError, JiraClient, JiraConfigError
from jira_assist.jira.models import IssueCreateRequest, JiraConfig
from jira_assist.logs import configure_logging, redact_secret
from jira_assist.metrics import EnhancementMetrics
from jira_assist.ollama.client import GenerationServiceError, OllamaClient

logger = structlog.get_logger()

T = TypeVar("T")

# Global instances, initialized during lifespan startup
settings: Optional[Settings] = None
ollama_client: Optional[OllamaClient] = None
enhancer: Optional[IssueEnhancer] = None
current_config = JiraConfig()
metrics = EnhancementMetrics()


class EnhanceBody(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    model: Optional[str] = None


class ConfigBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    domain: str = ""
    email: str = ""
    api_token: str = Field(default="", alias="apiToken")


class CreateIssueBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    project_key: str = Field(default="", alias="projectKey")
    summary: str = ""
    description: str = ""
    issue_type: str = Field(default="", alias="issueType")


class CommentBody(BaseModel):
    body: str = ""


def _log_configuration(cfg: Settings) -> None:
    """Log configuration values with secrets redacted."""
    logger.info(
        "Jira Assist configuration",
        jira_domain=cfg.jira_domain,
        jira_email=cfg.jira_email,
        jira_token=redact_secret(cfg.jira_token),
        ollama_url=cfg.ollama_url,
        ollama_model=cfg.ollama_model or "(auto-detect)",
        ollama_timeout_seconds=cfg.ollama_timeout_seconds,
        generation_enabled=cfg.generation_enabled,
        host=cfg.host,
        port=cfg.port,
    )


def _build_enhancer(cfg: Settings, client: Optional[OllamaClient]) -> IssueEnhancer:
    return IssueEnhancer(
        generation_client=client,
        default_model=cfg.ollama_model,
        temperature=cfg.ollama_temperature,
        metrics=metrics,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown.

    Handles:
    - Configuration loading and validation
    - Logging configuration (with secrets redacted)
    - Generation client and enhancer wiring
    - Closing the generation client on shutdown
    """
    global settings, ollama_client, enhancer, current_config

    settings = get_settings()
    configure_logging(settings.log_level)

    logger.info("Jira Assist starting up")
    _log_configuration(settings)

    current_config = settings.jira_config()
    ollama_client = None
    if settings.generation_enabled:
        ollama_client = OllamaClient(
            base_url=settings.ollama_url,
            chat_timeout=settings.ollama_timeout_seconds,
            probe_timeout=settings.ollama_probe_timeout_seconds,
        )
    enhancer = _build_enhancer(settings, ollama_client)

    logger.info("Jira Assist started successfully")

    yield

    logger.info("Jira Assist shutting down")

    if ollama_client is not None:
        await ollama_client.close()


app = FastAPI(
    title="Jira Assist",
    description="Jira issue creation with story enhancement",
    version="1.0.0",
    lifespan=lifespan,
)


def _jira_timeout() -> float:
    return settings.jira_timeout_seconds if settings is not None else 30.0


def _require_config(message: str = "Jira configuration not set") -> JiraConfig:
    if not current_config.is_complete:
        raise HTTPException(status_code=400, detail=message)
    return current_config


async def _call_jira(
    operation: str,
    call: Callable[[JiraClient], Awaitable[T]],
    config: Optional[JiraConfig] = None,
) -> T:
    """Run one Jira operation with the current configuration.

    Tracker errors become HTTP 500 responses carrying Jira's message.
    """
    if config is None:
        config = _require_config()
    try:
        async with JiraClient(config, timeout=_jira_timeout()) as client:
            result = await call(client)
    except JiraConfigError as e:
        metrics.record_jira_request(operation, success=False)
        raise HTTPException(status_code=400, detail=e.message)
    except JiraAPIError as e:
        metrics.record_jira_request(operation, success=False)
        logger.error(
            "Jira request failed",
            operation=operation,
            status_code=e.status_code,
            error=e.message,
        )
        raise HTTPException(status_code=500, detail=e.message)

    metrics.record_jira_request(operation, success=True)
    return result


@app.get("/health")
async def health():
    """Liveness probe endpoint."""
    return {"status": "healthy"}


@app.get("/metrics")
async def prometheus_metrics():
    """Prometheus metrics endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/api/ollama-test")
async def ollama_test():
    """Report whether Ollama is running and which models it has."""
    if ollama_client is None:
        return {"running": False, "error": "Generation is disabled"}

    if not await ollama_client.ping():
        logger.warning("Ollama is not responding", base_url=ollama_client.base_url)
        return {
            "running": False,
            "error": f"Ollama not responding on {ollama_client.base_url}",
        }

    try:
        models = await ollama_client.list_models()
    except GenerationServiceError as e:
        logger.warning("Failed to list Ollama models", error=e.message)
        return {"running": True, "models": []}

    logger.info("Ollama is running", model_count=len(models))
    return {"running": True, "models": [m.name for m in models]}


@app.post("/api/enhance")
async def enhance(body: EnhanceBody):
    """Enhance raw title and description.

    Uses the Ollama model when available, else the rule-based rewriter.
    """
    try:
        request = EnhancementRequest(
            title=body.title,
            description=body.description or "",
            model_hint=body.model,
        )
    except ValidationError:
        raise HTTPException(status_code=400, detail="Missing title or description")

    if enhancer is None:
        raise HTTPException(status_code=503, detail="Enhancer not initialized")

    result = await enhancer.enhance(request)
    return result.to_dict()


@app.post("/api/config")
async def save_config(body: ConfigBody):
    """Store Jira configuration after validating it against Jira."""
    global current_config

    try:
        config = JiraConfig(domain=body.domain, email=body.email, api_token=body.api_token)
    except ValidationError:
        raise HTTPException(status_code=400, detail="Missing domain, email, or apiToken")
    if not config.is_complete:
        raise HTTPException(status_code=400, detail="Missing domain, email, or apiToken")

    current_config = config
    logger.info(
        "Jira configuration updated",
        domain=config.domain,
        email=config.email,
        api_token=redact_secret(config.api_token),
    )

    valid = await _call_jira(
        "validate",
        lambda client: client.validate_credentials(),
        config=config,
    )
    if not valid:
        raise HTTPException(status_code=401, detail="Invalid Jira credentials or configuration")

    return {"success": True, "message": "Configuration saved and validated"}


@app.get("/api/config")
async def get_config():
    """Current configuration, without the token."""
    return {
        "domain": current_config.domain,
        "email": current_config.email,
        "hasToken": bool(current_config.api_token),
    }


@app.post("/api/validate")
async def validate_config():
    """Validate the current configuration against Jira."""
    config = _require_config("Configuration not set. Please configure first.")
    valid = await _call_jira(
        "validate",
        lambda client: client.validate_credentials(),
        config=config,
    )
    return {"valid": valid}


@app.get("/api/issue-types/{project_key}")
async def issue_types(project_key: str):
    """Issue types available in a project."""
    types = await _call_jira(
        "issue_types",
        lambda client: client.get_issue_types(project_key),
    )
    return {"issueTypes": [t.model_dump() for t in types]}


@app.get("/api/projects")
async def projects():
    """Projects visible to the configured account."""
    found = await _call_jira("projects", lambda client: client.list_projects())
    return {"projects": [p.model_dump() for p in found]}


@app.post("/api/create-issue")
async def create_issue(body: CreateIssueBody):
    """Create a Jira issue."""
    if not (body.project_key and body.summary and body.description and body.issue_type):
        raise HTTPException(
            status_code=400,
            detail="Missing required fields: projectKey, summary, description, issueType",
        )
    _require_config()

    try:
        request = IssueCreateRequest(
            project_key=body.project_key,
            summary=body.summary,
            description=body.description,
            issue_type=body.issue_type,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    issue = await _call_jira("create_issue", lambda client: client.create_issue(request))
    logger.info("Issue created", issue_key=issue.key, project_key=request.project_key)
    return {"success": True, "issue": issue.to_dict()}


@app.post("/api/issues/{issue_key}/comments")
async def add_comment(issue_key: str, body: CommentBody):
    """Add a comment to an issue."""
    if not body.body.strip():
        raise HTTPException(status_code=400, detail="Missing comment body")

    comment = await _call_jira(
        "add_comment",
        lambda client: client.add_comment(issue_key, body.body),
    )
    return {"success": True, "comment": comment.to_dict()}


def run() -> None:
    """Run the server with uvicorn."""
    import uvicorn

    run_settings = get_settings()
    uvicorn.run(
        app,
        host=run_settings.host,
        port=run_settings.port,
        log_level=run_settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
