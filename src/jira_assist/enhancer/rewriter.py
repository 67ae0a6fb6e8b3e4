"""Rule-based story rewriter.

Builds a Jira-ready title and a user-story description from raw issue
text without calling any external service. Used whenever the generation
service is unreachable or its output cannot be used.

Titles come from the submitted title when it is usable, otherwise from an
ordered table of extractors run over the description (first match wins).
Descriptions follow a fixed narrative:

    As a <role>, I want to <capability>, so that I can <benefit>.

    <original description>

    Acceptance Criteria:
    - Given ... (four bullets)

The rewriter is pure: identical input always yields identical output.
"""

import logging
import re
from typing import Callable, Optional

from jira_assist.enhancer.classifier import classify
from jira_assist.enhancer.models import (
    MAX_TITLE_LENGTH,
    MIN_TITLE_LENGTH,
    RewriteResult,
)


logger = logging.getLogger(__name__)


ACTION_VERBS = (
    "Add",
    "Create",
    "Fix",
    "Update",
    "Implement",
    "Develop",
    "Enable",
    "Provide",
    "Allow",
    "Support",
    "Build",
    "Design",
    "Integrate",
    "Improve",
    "Automate",
    "Detect",
    "Monitor",
    "Prevent",
)

_ACTION_VERB_LOOKUP = {verb.lower(): verb for verb in ACTION_VERBS}

MINOR_WORDS = frozenset(
    {"a", "an", "the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by"}
)

DEFAULT_TITLE = "Implement System Enhancement"
DEFAULT_ROLE = "user"
DEFAULT_CAPABILITY = "complete my work with this feature"
DEFAULT_BENEFIT = "improve their workflow and system efficiency"

ROLE_NOUNS = (
    "administrator",
    "admin",
    "developer",
    "manager",
    "customer",
    "analyst",
    "tester",
    "operator",
    "engineer",
    "designer",
    "editor",
    "moderator",
    "reviewer",
    "agent",
    "owner",
    "member",
    "user",
)

ACCEPTANCE_CRITERIA_HEADER = "Acceptance Criteria:"

PLACEHOLDER_PATTERN = re.compile(
    r"\b(?:untitled|no title|tbd|todo|placeholder|n/a|lorem ipsum|enter (?:a )?title)\b"
    r"|\[title\]|<title>",
    re.IGNORECASE,
)

# Ends a clause: "so that", sentence punctuation, or end of text.
_CLAUSE_END = r"(?=\s*,?\s+so\s+that\b|[.!?;]|$)"

_I_WANT_TO = re.compile(
    r"\bI\s+want\s+to\s+(?P<clause>.+?)" + _CLAUSE_END,
    re.IGNORECASE,
)

_LEADING_ACTION = re.compile(
    r"^(?:please\s+|we\s+(?:need|want|should)\s+to\s+|need\s+to\s+)?"
    r"(?P<verb>create|add|implement|fix|update|develop|build|design|integrate|improve"
    r"|enable|provide|allow|support|automate|detect|monitor|scan|send|prevent)"
    r"\s+(?P<object>[^.!?;,]+)",
    re.IGNORECASE,
)

_SYSTEM_NOUN_CLAUSE = re.compile(
    r"\b(?P<noun>system|tool|feature|service|dashboard|module|page|api|report|workflow"
    r"|integration|mechanism|process|application|app|platform|interface|pipeline|bot|script)"
    r"\s+(?:that|to|which|for)\s+(?P<clause>[^.!?;,]+)",
    re.IGNORECASE,
)

_MONITORING_VERB = re.compile(
    r"\b(?P<verb>detect|monitor|scan|track|alert|notify|audit|analy[sz]e)s?"
    r"\s+(?P<object>[\w-]+(?:\s+[\w-]+){0,3})",
    re.IGNORECASE,
)

_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")

_AS_A_ROLE = re.compile(
    r"\bas\s+an?\s+(?P<role>[a-z][\w\s-]*?)(?=\s*,|\s+I\b|\s+we\b|\s+who\b|[.!?;]|$)",
    re.IGNORECASE,
)

_SO_THAT = re.compile(
    r"\bso\s+that\s+(?:(?:I|we)\s+(?:can|could|will)\s+)?(?P<benefit>[^.!?;]+)",
    re.IGNORECASE,
)

_SO_THAT_TAIL = re.compile(r",?\s+so\s+that\b.*$", re.IGNORECASE)

_FILLER_PREFIX = re.compile(
    r"^(?:please|kindly|we\s+need\s+to|we\s+want\s+to|we\s+should|we\s+must"
    r"|i\s+need\s+to|i\s+would\s+like\s+to|i'd\s+like\s+to|need\s+to|want\s+to"
    r"|it\s+would\s+be\s+(?:nice|great|good)\s+to|the\s+system\s+should"
    r"|there\s+should\s+be|can\s+you|could\s+you)\b[\s,:]*",
    re.IGNORECASE,
)

_TRAILING_PUNCTUATION = " .,!?;:"

# "user", "unit", "euro", "one" start with a consonant sound
_CONSONANT_SOUND_VOWEL = re.compile(
    r"^(?:uni|u[bcdfghjklmpqrstvwxz][aeiou]|eu|one\b|once\b)", re.IGNORECASE
)

_VOWEL_SOUND_H = re.compile(r"^(?:hour|honest|honou?r|heir)", re.IGNORECASE)


def collapse_whitespace(text: Optional[str]) -> str:
    """Collapse runs of whitespace into single spaces and trim."""
    return re.sub(r"\s+", " ", text or "").strip()


def title_case(text: str) -> str:
    """Title-case text, keeping minor words lower-case after the first word.

    Only the first character of each word is changed so acronyms such as
    API or SSO survive.
    """
    words = collapse_whitespace(text).split(" ")
    cased = []
    for index, word in enumerate(words):
        lowered = word.lower()
        if index > 0 and lowered in MINOR_WORDS:
            cased.append(lowered)
        else:
            cased.append(word[:1].upper() + word[1:])
    return " ".join(cased)


def ensure_action_verb(title: str) -> str:
    """Make sure the title starts with one of the known action verbs."""
    first, _, rest = title.partition(" ")
    verb = _ACTION_VERB_LOOKUP.get(first.lower())
    if verb is None:
        return f"Implement {title}"
    return f"{verb} {rest}" if rest else verb


def clamp_title(title: str) -> str:
    """Clamp a title to the 8-80 character range."""
    title = title.strip()
    if len(title) > MAX_TITLE_LENGTH:
        title = title[: MAX_TITLE_LENGTH - 3].rstrip() + "..."
    while len(title) < MIN_TITLE_LENGTH:
        title = f"{title} System".strip()
    return title


def _strip_clause(text: str) -> str:
    return text.strip().rstrip(_TRAILING_PUNCTUATION).strip()


def _first_sentence(text: str) -> str:
    return _SENTENCE_SPLIT.split(text, maxsplit=1)[0]


def _lower_first(text: str) -> str:
    """Lower-case the first letter unless the first word looks like an acronym."""
    if len(text) > 1 and text[1].isupper():
        return text
    return text[:1].lower() + text[1:]


# -----------------------------------------------------------------------------
# Title extractors, tried in order; each returns None when it does not apply.
# -----------------------------------------------------------------------------


def _title_from_i_want_to(text: str) -> Optional[str]:
    match = _I_WANT_TO.search(text)
    if not match:
        return None
    clause = _strip_clause(match.group("clause"))
    return f"Implement {clause}" if clause else None


def _title_from_leading_action(text: str) -> Optional[str]:
    match = _LEADING_ACTION.search(text)
    if not match:
        return None
    obj = _strip_clause(_SO_THAT_TAIL.sub("", match.group("object")))
    if not obj:
        return None
    return f"{match.group('verb').capitalize()} {obj}"


def _title_from_system_noun(text: str) -> Optional[str]:
    match = _SYSTEM_NOUN_CLAUSE.search(text)
    if not match:
        return None
    clause = _strip_clause(_SO_THAT_TAIL.sub("", match.group("clause")))
    if not clause:
        return None
    return f"Create {match.group('noun')} to {clause}"


def _title_from_monitoring_verb(text: str) -> Optional[str]:
    match = _MONITORING_VERB.search(text)
    if not match:
        return None
    return f"Implement {match.group('verb').capitalize()} {match.group('object')} System"


def _title_from_first_sentence(text: str) -> Optional[str]:
    sentence = _strip_clause(_first_sentence(text))
    if 15 <= len(sentence) <= 80:
        return sentence
    return None


TITLE_EXTRACTORS: tuple[Callable[[str], Optional[str]], ...] = (
    _title_from_i_want_to,
    _title_from_leading_action,
    _title_from_system_noun,
    _title_from_monitoring_verb,
    _title_from_first_sentence,
)


def is_usable_title(title: Optional[str]) -> bool:
    """Check whether a submitted title can be kept (after normalization)."""
    cleaned = collapse_whitespace(title)
    return len(cleaned) >= MIN_TITLE_LENGTH and not PLACEHOLDER_PATTERN.search(cleaned)


def derive_title(title: Optional[str], description: str) -> str:
    """Derive a verb-led title between 8 and 80 characters.

    Args:
        title: The submitted title, if any.
        description: The raw description.

    Returns:
        The normalized title.
    """
    if is_usable_title(title):
        candidate = collapse_whitespace(title)
    else:
        text = collapse_whitespace(description)
        candidate = DEFAULT_TITLE
        for extractor in TITLE_EXTRACTORS:
            extracted = extractor(text)
            if extracted:
                candidate = extracted
                break

    return clamp_title(ensure_action_verb(title_case(candidate)))


# -----------------------------------------------------------------------------
# User story fields
# -----------------------------------------------------------------------------


def extract_role(text: str) -> str:
    """Find the actor of the story, defaulting to "user"."""
    match = _AS_A_ROLE.search(text)
    if match:
        role = " ".join(match.group("role").split()[:4])
        if role:
            return role

    lowered = text.lower()
    for noun in ROLE_NOUNS:
        if re.search(rf"\b{noun}s?\b", lowered):
            return noun

    return DEFAULT_ROLE


def extract_capability(text: str) -> str:
    """Find what the actor wants to do."""
    match = _I_WANT_TO.search(text)
    if match:
        clause = _strip_clause(match.group("clause"))
        if clause:
            return _lower_first(clause)

    stripped = text
    while True:
        shortened = _FILLER_PREFIX.sub("", stripped, count=1)
        if shortened == stripped:
            break
        stripped = shortened

    capability = _strip_clause(_SO_THAT_TAIL.sub("", _first_sentence(stripped)))
    if not capability:
        capability = _strip_clause(text)
    if not capability:
        return DEFAULT_CAPABILITY
    return _lower_first(capability)


def extract_benefit(text: str) -> str:
    """Find why the actor wants it, defaulting to a generic benefit."""
    match = _SO_THAT.search(text)
    if match:
        benefit = _strip_clause(match.group("benefit"))
        if benefit:
            return benefit
    return DEFAULT_BENEFIT


def indefinite_article(word: str) -> str:
    """Pick "a" or "an" by the sound of the first syllable, approximately."""
    if _VOWEL_SOUND_H.match(word):
        return "an"
    if not word or word[0].lower() not in "aeiou" or _CONSONANT_SOUND_VOWEL.match(word):
        return "a"
    return "an"


def build_acceptance_criteria(role: str) -> str:
    article = indefinite_article(role)
    bullets = [
        f"- Given I am {article} {role}, when I use the new capability, "
        f"then it behaves as described above",
        f"- Given valid input, when the {role} completes the workflow, "
        f"then the expected result is saved and visible",
        f"- Given invalid input or a failure, when the {role} performs the action, "
        f"then a clear error message is shown",
        f"- Given the change is released, when the {role} uses existing features, "
        f"then they continue to work as before",
    ]
    return ACCEPTANCE_CRITERIA_HEADER + "\n" + "\n".join(bullets)


def build_description(description: str) -> str:
    """Compose the user-story description for raw description text."""
    text = collapse_whitespace(description)

    role = extract_role(text)
    capability = extract_capability(text)
    benefit = extract_benefit(text)

    story = (
        f"As {indefinite_article(role)} {role}, I want to {capability}, "
        f"so that I can {benefit}."
    )

    parts = [story]
    if text:
        parts.append(text)
    parts.append(build_acceptance_criteria(role))
    return "\n\n".join(parts)


def rewrite(title: Optional[str], description: str) -> RewriteResult:
    """Rewrite raw issue text into a titled user story.

    Never calls out and never fails. When the description is blank, the
    title is used as the source text for the story.

    Args:
        title: The submitted title, if any.
        description: The raw description.

    Returns:
        RewriteResult with the title, description and suggested type.
    """
    source_text = description if description and description.strip() else (title or "")

    result = RewriteResult(
        enhanced_title=derive_title(title, source_text),
        enhanced_description=build_description(source_text),
        suggested_type=classify(source_text),
    )

    logger.debug(
        "Rule-based rewrite applied",
        extra={
            "title": result.enhanced_title,
            "suggested_type": result.suggested_type.value,
        },
    )
    return result
