"""Case-insensitive pattern matching for board, list, card and content filters."""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from typing import Any

from trira.exceptions import InvalidPatternError
from trira.models import NormalizedCard

MATCH_ALL = ".*"

# Lists synced by default: release and build test plans
DEFAULT_LIST_PATTERN = "MUST PER (RELEASE|BUILD)"


def compile_pattern(expression: str | None) -> re.Pattern[str]:
    """Compile a user supplied expression, case-insensitively

    An empty or missing expression matches everything.

    Raises:
        InvalidPatternError: If the expression is not a valid regular expression
    """
    expression = expression or MATCH_ALL
    try:
        return re.compile(expression, re.IGNORECASE)
    except re.error as e:
        raise InvalidPatternError(
            f"Invalid regular expression '{expression}': {e}", pattern=expression
        ) from e


def join_patterns(expressions: Iterable[str] | str | None) -> str:
    """Combine several expressions into one alternation

    Example:
        >>> join_patterns(["Sprint.*", "Backlog"])
        '(?:Sprint.*)|(?:Backlog)'
    """
    if expressions is None:
        return MATCH_ALL
    if isinstance(expressions, str):
        return expressions
    parts = [e for e in expressions if e]
    if not parts:
        return MATCH_ALL
    if len(parts) == 1:
        return parts[0]
    return "|".join(f"(?:{p})" for p in parts)


def name_filter(pattern: re.Pattern[str]) -> Callable[[Any], bool]:
    """Predicate testing an entity's ``name`` attribute against ``pattern``"""

    def matches(entity: Any) -> bool:
        return pattern.search(entity.name) is not None

    return matches


def card_matches_content(card: NormalizedCard, pattern: re.Pattern[str]) -> bool:
    """Check whether a normalized card mentions ``pattern`` anywhere

    Looks at the summary, the description, checklist names and items, and
    the label names.
    """
    if pattern.search(card.summary) or pattern.search(card.description):
        return True
    for checklist_name, items in card.checklists.items():
        if pattern.search(checklist_name):
            return True
        if any(pattern.search(item) for item in items):
            return True
    return any(pattern.search(label) for label in card.labels)
