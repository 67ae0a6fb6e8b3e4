"""Keyword-based issue type classification.

Maps free-text descriptions to one of the Jira issue type labels by
testing five keyword families in a fixed order. The first family with a
match wins; descriptions that match nothing are treated as stories.
"""

import re
from typing import Pattern

from jira_assist.enhancer.models import IssueTypeLabel


def _keyword_pattern(*keywords: str) -> Pattern[str]:
    return re.compile(
        r"\b(?:" + "|".join(keywords) + r")\b",
        re.IGNORECASE,
    )


BUG_PATTERN = _keyword_pattern(
    r"bugs?",
    r"errors?",
    r"crash(?:es|ed|ing)?",
    r"broken",
    r"break(?:s|ing)?",
    r"fail(?:s|ed|ing|ure|ures)?",
    r"defects?",
    r"fix(?:es|ed)?",
    r"cannot",
    r"can't",
    r"can not",
    r"unable to",
    r"not working",
    r"doesn't work",
    r"does not work",
    r"exceptions?",
    r"incorrect(?:ly)?",
    r"wrong",
    r"regressions?",
    r"glitch(?:es)?",
)

STORY_PATTERN = _keyword_pattern(
    r"as an?",
    r"user stor(?:y|ies)",
    r"i want",
    r"i would like",
    r"so that",
    r"users?",
    r"customers?",
    r"should be able to",
    r"ability to",
    r"features?",
)

EPIC_PATTERN = _keyword_pattern(
    r"epics?",
    r"platforms?",
    r"architecture",
    r"overhaul",
    r"initiatives?",
    r"roadmap",
    r"multiple teams",
    r"end-to-end",
    r"large-scale",
    r"migrat(?:e|ion)",
    r"redesign",
    r"complete system",
)

IMPROVEMENT_PATTERN = _keyword_pattern(
    r"improve(?:s|d|ment|ments)?",
    r"enhance(?:s|d|ment|ments)?",
    r"optimi[sz](?:e|es|ation)",
    r"performance",
    r"faster",
    r"speed up",
    r"refactor(?:ing)?",
    r"better",
    r"upgrade",
    r"streamline",
    r"simplify",
)

TASK_PATTERN = _keyword_pattern(
    r"tasks?",
    r"chores?",
    r"update",
    r"configure",
    r"set ?up",
    r"install",
    r"document(?:ation)?",
    r"clean ?up",
    r"rename",
    r"bump",
    r"maintenance",
)

# Evaluated in order; the first family with a match decides the label.
KEYWORD_FAMILIES: tuple[tuple[IssueTypeLabel, Pattern[str]], ...] = (
    (IssueTypeLabel.BUG, BUG_PATTERN),
    (IssueTypeLabel.STORY, STORY_PATTERN),
    (IssueTypeLabel.EPIC, EPIC_PATTERN),
    (IssueTypeLabel.IMPROVEMENT, IMPROVEMENT_PATTERN),
    (IssueTypeLabel.TASK, TASK_PATTERN),
)

DEFAULT_LABEL = IssueTypeLabel.STORY


def classify(description: str) -> IssueTypeLabel:
    """Suggest an issue type for a free-text description.

    Args:
        description: Raw issue description (any casing).

    Returns:
        The label of the first keyword family that matches, or Story when
        none does.

    Example:
        >>> classify("fix the user login bug")
        <IssueTypeLabel.BUG: 'Bug'>
        >>> classify("improve the platform architecture")
        <IssueTypeLabel.EPIC: 'Epic'>
    """
    text = description or ""
    for label, pattern in KEYWORD_FAMILIES:
        if pattern.search(text):
            return label
    return DEFAULT_LABEL
