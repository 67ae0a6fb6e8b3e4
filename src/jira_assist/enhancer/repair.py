"""Repair and parsing of generation service responses.

Local models are asked for a bare JSON object with `title` and
`description` fields, but they often wrap it in commentary or code
fences, use triple quotes, leave raw newlines inside strings, or stop
mid-sentence. This module recovers the pair through a pipeline of pure
string transforms followed by a structured parse, then a regex
extraction as last resort.

Every stage is a plain `str -> str` function and idempotent on clean
input, so each one can be tested on its own. The entry point returns a
typed result (ParsedIssue or RepairFailure) and never raises.
"""

import json
import logging
import re
from typing import Callable, Optional, Pattern

from pydantic import BaseModel, StrictStr, ValidationError

from jira_assist.enhancer.models import (
    ParsedIssue,
    ParseResult,
    RepairFailure,
    RepairFailureKind,
)


logger = logging.getLogger(__name__)


FENCE = "```"

_FENCE_LANGUAGE = re.compile(r"^[A-Za-z0-9_-]*[ \t]*\n?")
_BRACE_BLOCK = re.compile(r"\{[\s\S]*\}")
_UNTERMINATED_DESCRIPTION = re.compile(r'"description"\s*:\s*"(?:[^"\\]|\\.)*\\?$')
_TRAILING_COMMA = re.compile(r",\s*([}\]])")

_TITLE_FIELD = re.compile(r'"title"\s*:\s*"((?:[^"\\]|\\.)+)"')
_TITLE_FIELD_TRIPLE = re.compile(r'"title"\s*:\s*"""([\s\S]+?)"""')
_DESCRIPTION_FIELD = re.compile(r'"description"\s*:\s*"((?:[^"\\]|\\.)*)"', re.DOTALL)
_DESCRIPTION_FIELD_TRIPLE = re.compile(r'"description"\s*:\s*"""([\s\S]+?)"""')

_HTML_TAG = re.compile(r"<[^>]+>")
_HTML_ENTITIES = {
    "&nbsp;": " ",
    "&lt;": "<",
    "&gt;": ">",
    "&quot;": '"',
    "&#39;": "'",
    "&amp;": "&",
}
_WIDE_SPACE_RUN = re.compile(r" {3,}")
_EXTRA_BLANK_LINES = re.compile(r"\n[ \t]*\n(?:[ \t]*\n)+")

_JSON_FIELD_VALUE = re.compile(
    r'"?(?:title|description)"?\s*:\s*"((?:[^"\\]|\\.)*)"?', re.IGNORECASE | re.DOTALL
)
_JSON_KEY = re.compile(r'"?(?:title|description)"?\s*:\s*', re.IGNORECASE)
_LITERAL_ESCAPES = {"\\n": "\n", "\\t": " ", "\\r": "", '\\"': '"', "\\\\": "\\"}

MIN_PROSE_LENGTH = 40
MIN_PROSE_WORDS = 6


class GeneratedIssue(BaseModel):
    """Shape of the JSON object the generation service is asked for."""

    title: StrictStr
    description: StrictStr


# -----------------------------------------------------------------------------
# Repair stages
# -----------------------------------------------------------------------------


def strip_outside_braces(text: str) -> str:
    """Drop everything before the first `{` and after the last `}`."""
    start = text.find("{")
    if start == -1:
        return text
    end = text.rfind("}")
    if end < start:
        return text[start:]
    return text[start : end + 1]


def _find_fence(text: str, start: int = 0) -> int:
    """Index of the next fence outside a JSON string literal, or -1."""
    in_string = False
    escaped = False
    index = 0
    while index < len(text):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif index >= start and text.startswith(FENCE, index):
            return index
        index += 1
    return -1


def extract_fenced_block(text: str) -> str:
    """Keep only the content of the first fenced code block, if any.

    Fences inside JSON string values are not block delimiters. A lone
    fence is the survivor of a block cut in half by the first stage; the
    side holding the title field is kept, else the text before it.
    """
    first = _find_fence(text)
    if first == -1:
        return text
    second = _find_fence(text, first + len(FENCE))
    if second == -1:
        before = text[:first]
        after = _FENCE_LANGUAGE.sub("", text[first + len(FENCE):], count=1)
        if '"title"' in after and '"title"' not in before:
            return after.strip()
        return before.rstrip() if before.strip() else after
    inner = text[first + len(FENCE) : second]
    return _FENCE_LANGUAGE.sub("", inner, count=1).strip()


def extract_brace_block(text: str) -> str:
    """Keep the first `{` through the last `}` (greedy match)."""
    match = _BRACE_BLOCK.search(text)
    if match:
        return match.group(0)
    start = text.find("{")
    return text[start:] if start != -1 else text


def close_truncated_object(text: str) -> str:
    """Close a response that stopped before its final brace."""
    stripped = text.rstrip()
    if "{" not in stripped:
        return text
    closed = stripped
    if not stripped.endswith("}") and _UNTERMINATED_DESCRIPTION.search(stripped):
        if closed.endswith("\\") and not closed.endswith("\\\\"):
            closed = closed[:-1]
        closed += '"'
    deficit = closed.count("{") - closed.count("}")
    if closed == stripped and deficit <= 0:
        return text
    return closed + "}" * max(deficit, 0)


def _escape_control_characters_in_strings(text: str) -> str:
    out = []
    in_string = False
    escaped = False
    for char in text:
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            elif char == "\n":
                out.append("\\n")
                continue
            elif char == "\t":
                out.append("\\t")
                continue
            elif char == "\r":
                out.append("\\r")
                continue
        elif char == '"':
            in_string = True
        out.append(char)
    return "".join(out)


def normalize_escaping(text: str) -> str:
    """Fix quoting and escaping mistakes that break JSON parsing."""
    text = text.replace('"""', '"')
    text = text.replace('\\\\"', '\\"')
    text = _escape_control_characters_in_strings(text)
    text = text.replace("\\\\\\\\", "\\\\")
    return _TRAILING_COMMA.sub(r"\1", text)


REPAIR_STAGES: tuple[Callable[[str], str], ...] = (
    strip_outside_braces,
    extract_fenced_block,
    extract_brace_block,
    close_truncated_object,
    normalize_escaping,
)


def repair(raw: str) -> str:
    """Run every repair stage over the raw response text."""
    text = raw
    for stage in REPAIR_STAGES:
        text = stage(text)
    return text


# -----------------------------------------------------------------------------
# Parsing
# -----------------------------------------------------------------------------


def _parse_structured(text: str) -> tuple[Optional[GeneratedIssue], Optional[str]]:
    try:
        data = json.loads(text)
    except (ValueError, RecursionError) as e:
        return None, f"malformed JSON: {e}"

    if not isinstance(data, dict):
        return None, f"malformed JSON: expected an object, got {type(data).__name__}"

    try:
        return GeneratedIssue.model_validate(data), None
    except ValidationError as e:
        missing = [
            ".".join(str(part) for part in err["loc"]) for err in e.errors()
        ]
        return None, f"missing fields: {', '.join(missing)}"


def _unescape(value: str) -> str:
    try:
        return json.loads(f'"{value}"')
    except ValueError:
        for escape, replacement in _LITERAL_ESCAPES.items():
            value = value.replace(escape, replacement)
        return value


def _search_field(
    patterns: tuple[Pattern[str], ...],
    texts: tuple[str, ...],
) -> Optional[str]:
    for text in texts:
        for pattern in patterns:
            match = pattern.search(text)
            if match and match.group(1).strip():
                return _unescape(match.group(1))
    return None


def _extract_with_regex(repaired: str, raw: str) -> tuple[Optional[str], Optional[str]]:
    texts = (repaired, raw)
    title = _search_field((_TITLE_FIELD_TRIPLE, _TITLE_FIELD), texts)
    description = _search_field((_DESCRIPTION_FIELD_TRIPLE, _DESCRIPTION_FIELD), texts)
    return title, description


def clean_text(text: str) -> str:
    """Strip markup and tidy whitespace in a recovered field."""
    text = _HTML_TAG.sub("", text)
    for entity, replacement in _HTML_ENTITIES.items():
        text = text.replace(entity, replacement)
    text = _WIDE_SPACE_RUN.sub("\n\n", text)
    text = _EXTRA_BLANK_LINES.sub("\n\n", text)
    return text.strip()


def _finish(title: str, description: str) -> ParseResult:
    title = clean_text(title)
    description = clean_text(description)
    missing = [
        name for name, value in (("title", title), ("description", description)) if not value
    ]
    if missing:
        return RepairFailure(
            kind=RepairFailureKind.MISSING_FIELDS,
            reason=f"missing required field: {', '.join(missing)}",
        )
    return ParsedIssue(title=title, description=description)


def parse_generation_response(raw: Optional[str]) -> ParseResult:
    """Recover a title/description pair from a generation response.

    Args:
        raw: Raw message content returned by the generation service.

    Returns:
        ParsedIssue on success, RepairFailure describing whether the text
        was malformed or lacked a required field otherwise.
    """
    if not raw or not raw.strip():
        return RepairFailure(
            kind=RepairFailureKind.MALFORMED_JSON,
            reason="empty response",
        )

    repaired = repair(raw)
    issue, error = _parse_structured(repaired)
    if issue is not None:
        return _finish(issue.title, issue.description)

    logger.debug(
        "Structured parse failed, trying field extraction",
        extra={"error": error, "response_preview": raw[:200]},
    )

    title, description = _extract_with_regex(repaired, raw)
    if title is not None and description is not None:
        return _finish(title, description)

    if title is None and description is None and error and error.startswith("malformed"):
        return RepairFailure(kind=RepairFailureKind.MALFORMED_JSON, reason=error)

    missing = [
        name for name, value in (("title", title), ("description", description)) if value is None
    ]
    return RepairFailure(
        kind=RepairFailureKind.MISSING_FIELDS,
        reason=f"missing fields: {', '.join(missing)}",
    )


# -----------------------------------------------------------------------------
# Salvage of unparseable output
# -----------------------------------------------------------------------------


def salvage_raw_text(raw: str) -> tuple[str, bool]:
    """Strip JSON delimiters and escapes from unparseable output.

    Args:
        raw: Raw message content returned by the generation service.

    Returns:
        Tuple of the cleaned text and whether anything was stripped.
    """
    original = raw.strip()
    text = original.replace(FENCE + "json", "").replace(FENCE, "")
    text = _JSON_FIELD_VALUE.sub(lambda match: match.group(1), text)
    text = _JSON_KEY.sub("", text)
    for escape, replacement in _LITERAL_ESCAPES.items():
        text = text.replace(escape, replacement)
    text = re.sub(r"[{}]", "", text)
    text = re.sub(r"^[ \t]*,|,[ \t]*$", "", text, flags=re.MULTILINE)
    text = clean_text(text)
    return text, text != original


def looks_like_prose(text: str) -> bool:
    """Check whether salvaged text is long enough, and wordy enough, to use."""
    if len(text) < MIN_PROSE_LENGTH:
        return False
    if len(text.split()) < MIN_PROSE_WORDS:
        return False
    letters = sum(1 for char in text if char.isalpha() or char.isspace())
    return letters / len(text) >= 0.6
