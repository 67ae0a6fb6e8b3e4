"""Enhancement models for the story enhancer.

This module defines the request/result models that flow through the
enhancement orchestrator, the issue type labels produced by the keyword
classifier, and the typed success/failure results of the generation
response parser.

Requests and results use Pydantic for validation; the parser results are
plain dataclasses since they never leave the enhancer package.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


MIN_TITLE_LENGTH = 8
MAX_TITLE_LENGTH = 80


class IssueTypeLabel(str, Enum):
    """Jira issue types the classifier can suggest.

    The declaration order is the precedence order used when a description
    matches keywords from several families.
    """

    BUG = "Bug"
    STORY = "Story"
    EPIC = "Epic"
    IMPROVEMENT = "Improvement"
    TASK = "Task"


class EnhancementSource(str, Enum):
    """Provenance of an enhancement result.

    Attributes:
        GENERATED: Parsed from a well-formed (or repaired) generation response.
        GENERATED_RAW: Unparseable generation output used verbatim as prose.
        GENERATED_CLEANED: Unparseable generation output used as prose after
            stripping JSON delimiters and escapes.
        FALLBACK: Produced by the rule-based rewriter.
    """

    GENERATED = "generated"
    GENERATED_RAW = "generated-raw"
    GENERATED_CLEANED = "generated-cleaned"
    FALLBACK = "fallback"


class EnhancementRequest(BaseModel):
    """Raw issue text submitted for enhancement.

    Attributes:
        title: Optional raw title.
        description: Raw description text. May be empty when a title is given.
        model_hint: Optional generation model name to use for this request.
    """

    model_config = ConfigDict(protected_namespaces=())

    title: Optional[str] = Field(
        default=None,
        description="Optional raw issue title",
    )

    description: str = Field(
        default="",
        description="Raw issue description",
    )

    model_hint: Optional[str] = Field(
        default=None,
        description="Generation model to use instead of the configured default",
    )

    @model_validator(mode="after")
    def require_title_or_description(self) -> "EnhancementRequest":
        """Reject requests with neither a title nor a description."""
        has_title = bool(self.title and self.title.strip())
        has_description = bool(self.description and self.description.strip())
        if not has_title and not has_description:
            raise ValueError("Missing title or description")
        return self

    @property
    def source_text(self) -> str:
        """Text used for classification: the description, else the title."""
        if self.description and self.description.strip():
            return self.description
        return self.title or ""


class EnhancementResult(BaseModel):
    """Result of enhancing an issue's title and description.

    Attributes:
        enhanced_title: Polished title, trimmed, 8-80 characters.
        enhanced_description: Structured description text.
        suggested_type: Issue type suggested by the keyword classifier.
        source: Which path produced the result.
        warning: Last error seen before falling back, if any.
    """

    enhanced_title: str = Field(
        ...,
        min_length=MIN_TITLE_LENGTH,
        max_length=MAX_TITLE_LENGTH,
        description="Polished issue title",
    )

    enhanced_description: str = Field(
        ...,
        min_length=1,
        description="Structured issue description",
    )

    suggested_type: IssueTypeLabel = Field(
        ...,
        description="Issue type suggested by keyword classification",
    )

    source: EnhancementSource = Field(
        ...,
        description="Provenance tag for the result",
    )

    warning: Optional[str] = Field(
        default=None,
        description="Human-readable reason the generation path was not used",
    )

    def to_dict(self) -> dict:
        """Convert the result to the camelCase payload served to callers.

        Returns:
            dict: Dictionary with enhancedTitle, enhancedDescription,
            suggestedType, source and, when set, warning.
        """
        payload = {
            "enhancedTitle": self.enhanced_title,
            "enhancedDescription": self.enhanced_description,
            "suggestedType": self.suggested_type.value,
            "source": self.source.value,
        }
        if self.warning:
            payload["warning"] = self.warning
        return payload


@dataclass(frozen=True)
class RewriteResult:
    """Output of the rule-based rewriter."""

    enhanced_title: str
    enhanced_description: str
    suggested_type: IssueTypeLabel


class RepairFailureKind(str, Enum):
    MALFORMED_JSON = "malformed-json"
    MISSING_FIELDS = "missing-fields"


@dataclass(frozen=True)
class ParsedIssue:
    """Title and description recovered from a generation response."""

    title: str
    description: str


@dataclass(frozen=True)
class RepairFailure:
    """Reason a generation response could not be turned into an issue.

    Attributes:
        kind: Whether the text was unparseable or lacked required fields.
        reason: Human-readable description of the failure.
    """

    kind: RepairFailureKind
    reason: str

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.reason}"


ParseResult = Union[ParsedIssue, RepairFailure]
