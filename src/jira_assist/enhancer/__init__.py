"""Issue text enhancement.

This module turns raw issue text into a polished title, a structured
description and a suggested issue type:
- Keyword classification into Bug, Story, Epic, Improvement or Task
- Rule-based rewriting into a user story with acceptance criteria
- Repair and parsing of loosely-structured model output
- Orchestration of the generation service with a rule-based fallback
"""

from jira_assist.enhancer.classifier import classify
from jira_assist.enhancer.models import (
    EnhancementRequest,
    EnhancementResult,
    EnhancementSource,
    IssueTypeLabel,
    ParsedIssue,
    RepairFailure,
    RepairFailureKind,
    RewriteResult,
)
from jira_assist.enhancer.orchestrator import EnhancementError, IssueEnhancer
from jira_assist.enhancer.repair import parse_generation_response
from jira_assist.enhancer.rewriter import rewrite

__all__ = [
    "classify",
    "EnhancementError",
    "EnhancementRequest",
    "EnhancementResult",
    "EnhancementSource",
    "IssueEnhancer",
    "IssueTypeLabel",
    "parse_generation_response",
    "ParsedIssue",
    "RepairFailure",
    "RepairFailureKind",
    "rewrite",
    "RewriteResult",
]
