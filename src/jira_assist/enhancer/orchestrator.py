"""Enhancement orchestrator.

This module implements the IssueEnhancer that turns raw issue text into
a polished title, a structured description and a suggested issue type.
It asks a local Ollama model first and degrades in steps when that does
not work out:

1. Generated: the model answered with JSON the repair parser accepts.
2. Generated raw/cleaned: the answer was not parseable but reads like
   prose, so it becomes the description and the rule-based rewriter
   supplies the title.
3. Fallback: the rule-based rewriter produces everything. The result
   carries the last error as a warning.

The issue type always comes from the keyword classifier, whichever path
produced the text.
"""

import logging
import time
from typing import Optional

from jira_assist.enhancer.classifier import classify
from jira_assist.enhancer.models import (
    EnhancementRequest,
    EnhancementResult,
    EnhancementSource,
    ParsedIssue,
)
from jira_assist.enhancer.repair import (
    looks_like_prose,
    parse_generation_response,
    salvage_raw_text,
)
from jira_assist.enhancer.rewriter import (
    clamp_title,
    collapse_whitespace,
    derive_title,
    ensure_action_verb,
    rewrite,
)
from jira_assist.metrics import EnhancementMetrics
from jira_assist.ollama.client import GenerationServiceError, OllamaClient


logger = logging.getLogger(__name__)


ENHANCEMENT_SYSTEM_PROMPT = """You are an expert Jira story writer. Rewrite the issue you are given into a professional Jira issue:

1. Make the title concise and action-oriented (start with a verb such as Add, Create, Fix, Implement, Improve).
2. Rephrase the description in clear, professional language.
3. Structure the description as a short user story followed by an "Acceptance Criteria:" list.
4. Use plain text only. No markdown headers, no HTML.

Respond with valid JSON only. Do not include any text, markdown or code fences before or after the JSON object.

Respond with this exact JSON structure:
{
  "title": "Concise, action-oriented title",
  "description": "Structured description with acceptance criteria"
}"""


def build_user_message(title: Optional[str], description: str) -> str:
    """Build the user message for the enhancement chat call.

    Args:
        title: The submitted title, if any.
        description: The raw description.

    Returns:
        Formatted user message.
    """
    title_content = title.strip() if title and title.strip() else "(no title provided)"
    description_content = description.strip() if description.strip() else "(no description provided)"

    return f"""Title: {title_content}
Description: {description_content}

Rewrite this into a professional Jira issue and respond with the JSON object only."""


class EnhancementError(Exception):
    """Raised when the generation path cannot produce a result.

    Attributes:
        message: Human-readable error description.
        reason: Short machine-friendly reason, used as a metric label.
        cause: The underlying exception, if any.
    """

    def __init__(self, message: str, reason: str, cause: Optional[Exception] = None):
        self.message = message
        self.reason = reason
        self.cause = cause
        super().__init__(message)


class IssueEnhancer:
    """Enhances raw issue text with a local model and a rule-based fallback.

    Attributes:
        generation_client: Ollama client, or None when generation is disabled.
        default_model: Model used when a request does not name one. When
            unset, the first model the server lists is used.
        temperature: Sampling temperature for the chat call.

    Example:
        >>> enhancer = IssueEnhancer(OllamaClient(), default_model="mistral")
        >>> result = await enhancer.enhance(
        ...     EnhancementRequest(description="users cannot log in, please fix")
        ... )
        >>> result.suggested_type
        <IssueTypeLabel.BUG: 'Bug'>
    """

    def __init__(
        self,
        generation_client: Optional[OllamaClient],
        default_model: Optional[str] = None,
        temperature: float = 0.7,
        metrics: Optional[EnhancementMetrics] = None,
    ):
        self.generation_client = generation_client
        self.default_model = default_model
        self.temperature = temperature
        self.metrics = metrics

    async def enhance(self, request: EnhancementRequest) -> EnhancementResult:
        """Enhance an issue's title and description.

        Never raises: any failure on the generation path ends in the
        rule-based rewriter.

        Args:
            request: Validated enhancement request.

        Returns:
            EnhancementResult tagged with the path that produced it.
        """
        logger.info(
            "Enhancing issue",
            extra={
                "title": (request.title or "")[:50],
                "description_length": len(request.description),
                "model_hint": request.model_hint,
            },
        )

        try:
            result = await self._enhance_with_generation(request)
        except EnhancementError as e:
            logger.warning(
                "Generation path unavailable, using rule-based rewriter",
                extra={"reason": e.reason, "error": e.message},
            )
            result = self._fallback(request, warning=e.message, reason=e.reason)
        except Exception as e:
            logger.error(
                "Unexpected error on generation path, using rule-based rewriter",
                extra={"error": str(e), "error_type": type(e).__name__},
            )
            result = self._fallback(
                request,
                warning=f"Enhancement failed: {str(e) or type(e).__name__}",
                reason="error",
            )

        if self.metrics is not None:
            self.metrics.record_enhancement(result.source.value)

        logger.info(
            "Issue enhanced",
            extra={
                "source": result.source.value,
                "suggested_type": result.suggested_type.value,
                "title_length": len(result.enhanced_title),
            },
        )
        return result

    async def _resolve_model(self, request: EnhancementRequest) -> str:
        """Pick the model: request hint, then default, then first listed."""
        if request.model_hint and request.model_hint.strip():
            return request.model_hint.strip()
        if self.default_model:
            return self.default_model

        try:
            models = await self.generation_client.list_models()
        except GenerationServiceError as e:
            raise EnhancementError(e.message, reason="unavailable", cause=e)

        if not models:
            raise EnhancementError("No generation models available", reason="no-model")

        logger.info("Auto-selected generation model", extra={"model": models[0].name})
        return models[0].name

    async def _enhance_with_generation(self, request: EnhancementRequest) -> EnhancementResult:
        """Run the generation path.

        Raises:
            EnhancementError: If the service is disabled or unreachable, or
                its answer cannot be used.
        """
        if self.generation_client is None:
            raise EnhancementError("Generation service is disabled", reason="disabled")

        if not await self.generation_client.ping():
            raise EnhancementError(
                f"Generation service is not responding at {self.generation_client.base_url}",
                reason="unavailable",
            )

        model = await self._resolve_model(request)

        started = time.monotonic()
        try:
            raw = await self.generation_client.chat(
                model=model,
                system_prompt=ENHANCEMENT_SYSTEM_PROMPT,
                user_message=build_user_message(request.title, request.description),
                temperature=self.temperature,
            )
        except GenerationServiceError as e:
            raise EnhancementError(e.message, reason="unavailable", cause=e)
        finally:
            if self.metrics is not None:
                self.metrics.record_generation_duration(time.monotonic() - started)

        suggested_type = classify(request.source_text)
        parsed = parse_generation_response(raw)
        if isinstance(parsed, ParsedIssue):
            return EnhancementResult(
                enhanced_title=clamp_title(ensure_action_verb(collapse_whitespace(parsed.title))),
                enhanced_description=parsed.description,
                suggested_type=suggested_type,
                source=EnhancementSource.GENERATED,
            )

        logger.warning(
            "Generation response could not be parsed",
            extra={"failure": str(parsed), "response_preview": raw[:200]},
        )

        text, changed = salvage_raw_text(raw)
        if not looks_like_prose(text):
            raise EnhancementError(
                f"Generation response unusable ({parsed})",
                reason="unusable-response",
            )

        return EnhancementResult(
            enhanced_title=derive_title(request.title, request.source_text),
            enhanced_description=text,
            suggested_type=suggested_type,
            source=(
                EnhancementSource.GENERATED_CLEANED
                if changed
                else EnhancementSource.GENERATED_RAW
            ),
            warning=f"Generation response was not valid JSON ({parsed})",
        )

    def _fallback(
        self,
        request: EnhancementRequest,
        warning: Optional[str],
        reason: str,
    ) -> EnhancementResult:
        if self.metrics is not None:
            self.metrics.record_generation_failure(reason)

        rewritten = rewrite(request.title, request.description)
        return EnhancementResult(
            enhanced_title=rewritten.enhanced_title,
            enhanced_description=rewritten.enhanced_description,
            suggested_type=rewritten.suggested_type,
            source=EnhancementSource.FALLBACK,
            warning=warning,
        )
