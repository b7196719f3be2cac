"""Map raw Trello cards to normalized, tracker-agnostic records."""

from __future__ import annotations

import re

from trira.models import NormalizedCard, RawCard

# "(3) Fix login" or "(0.5)Fix login"
STORY_POINTS_PATTERN = re.compile(r"^\((\d+(\.\d+)?)\)\s*(.*)$")


def split_story_points(name: str) -> tuple[float | None, str]:
    """Split a leading ``(<number>)`` annotation off a card name

    Returns:
        (story points or None, remaining summary)

    Example:
        >>> split_story_points("(3) Fix login")
        (3.0, 'Fix login')
        >>> split_story_points("Fix login")
        (None, 'Fix login')
    """
    match = STORY_POINTS_PATTERN.match(name)
    if not match:
        return None, name
    return float(match.group(1)), match.group(3)


def normalize_card(card: RawCard) -> NormalizedCard:
    """Build the canonical record for one card; performs no I/O"""
    story_points, summary = split_story_points(card.name)
    return NormalizedCard(
        summary=summary,
        story_points=story_points,
        description=card.description,
        permalink=card.permalink,
        labels=list(card.labels),
        checklists={name: list(checklist.items) for name, checklist in card.checklists.items()},
    )
