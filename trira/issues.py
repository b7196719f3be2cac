"""Create JIRA issues for normalized cards, linked to a parent epic."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

from trira.exceptions import (
    EpicTypeMismatchError,
    IssueCreationError,
    MissingCapabilityError,
)
from trira.jira_client import JiraClient
from trira.models import NormalizedCard, TrackerIssue

logger = logging.getLogger(__name__)

EPIC_ISSUE_TYPE = "Epic"
EPIC_LINK_FIELD = "Epic Link"
STORY_POINTS_FIELD = "Story Points"

# Label put on every issue created from a card
ISSUE_LABEL = "test-case"


def find_field_id(fields: Sequence[dict], name: str) -> str | None:
    """Id of the field definition called ``name`` (case-insensitive)"""
    wanted = name.lower()
    for field_def in fields:
        if str(field_def.get("name", "")).lower() == wanted:
            return str(field_def["id"])
    return None


def format_description(card: NormalizedCard) -> str:
    """Card description, a link back to Trello, and one section per checklist"""
    description = f"{card.description}\n[Trello link|{card.permalink}]"
    for name, items in card.checklists.items():
        numbered = "\n".join(f"{index}. {item}" for index, item in enumerate(items, 1))
        description += f"\nh3. {name}\n{numbered}"
    return description


def build_issue_payload(
    epic: dict,
    card: NormalizedCard,
    epic_link_field: str,
    story_points_field: str | None = None,
) -> dict[str, Any]:
    """JIRA create-issue payload for ``card``, using ``epic`` as a template"""
    epic_fields = epic["fields"]
    fields: dict[str, Any] = {
        "issuetype": {"name": "Task"},
        "project": {"id": epic_fields["project"]["id"]},
        "summary": card.summary,
        "description": format_description(card),
        "fixVersions": [{"id": fv["id"]} for fv in epic_fields.get("fixVersions") or []],
        "labels": [ISSUE_LABEL, *card.labels],
        epic_link_field: epic["key"],
    }
    if story_points_field and card.story_points is not None:
        fields[story_points_field] = card.story_points
    return {"fields": fields}


class IssueCreator:
    """Create one Task per normalized card under a parent epic

    Both the Epic Link field and the epic's type are checked before any
    issue is written.
    """

    def __init__(self, jira: JiraClient, log: logging.Logger | None = None):
        self.jira = jira
        self.logger = log or logger

    async def _resolve_fields(self) -> tuple[str, str | None]:
        fields = await asyncio.to_thread(self.jira.list_fields)

        epic_link = find_field_id(fields, EPIC_LINK_FIELD)
        if not epic_link:
            raise MissingCapabilityError(
                f"JIRA instance {self.jira.host} has no '{EPIC_LINK_FIELD}' field; "
                "issues cannot be linked to an epic",
                field_name=EPIC_LINK_FIELD,
            )

        story_points = find_field_id(fields, STORY_POINTS_FIELD)
        if not story_points:
            self.logger.warning(
                "JIRA instance %s has no '%s' field, story points will not be set",
                self.jira.host,
                STORY_POINTS_FIELD,
            )
        return epic_link, story_points

    async def fetch_epic(self, epic_key: str) -> dict:
        """Fetch the parent issue and make sure it is an epic

        Raises:
            EpicTypeMismatchError: If the issue is not of type Epic
        """
        self.logger.info("Fetching epic %s from JIRA to act as template for issues", epic_key)
        epic = await asyncio.to_thread(self.jira.find_issue, epic_key)
        issue_type = (epic.get("fields", {}).get("issuetype") or {}).get("name")
        if issue_type != EPIC_ISSUE_TYPE:
            raise EpicTypeMismatchError(
                f"Issue {epic_key} is not an epic in JIRA (type: {issue_type})",
                issue_key=epic_key,
                issue_type=issue_type,
            )
        return epic

    async def create_issues(
        self, cards: Sequence[NormalizedCard], epic_key: str
    ) -> list[TrackerIssue]:
        """Create all issues concurrently and return them in card order

        Raises:
            MissingCapabilityError: If JIRA has no Epic Link field
            EpicTypeMismatchError: If ``epic_key`` is not an epic
            IssueCreationError: If any creation failed (others are kept)
        """
        epic_link_field, story_points_field = await self._resolve_fields()
        epic = await self.fetch_epic(epic_key)

        payloads = [
            build_issue_payload(epic, card, epic_link_field, story_points_field) for card in cards
        ]
        self.logger.debug("Will create %d issues in JIRA", len(payloads))

        results = await asyncio.gather(
            *(asyncio.to_thread(self.jira.create_issue, payload) for payload in payloads),
            return_exceptions=True,
        )

        issues: list[TrackerIssue] = []
        errors: list[BaseException] = []
        for payload, result in zip(payloads, results):
            if isinstance(result, BaseException):
                errors.append(result)
                self.logger.error(
                    "Failed to create '%s': %s", payload["fields"]["summary"], result
                )
                continue
            issues.append(
                TrackerIssue(
                    key=result["key"],
                    epic_key=epic["key"],
                    fields=payload["fields"],
                    id=result.get("id"),
                )
            )
            self.logger.info("Created %s: %s", result["key"], payload["fields"]["summary"])

        if errors:
            created = [issue.key for issue in issues]
            raise IssueCreationError(
                f"Failed to create {len(errors)} of {len(payloads)} issues in epic {epic_key}: "
                f"{errors[0]}" + (f" (already created: {', '.join(created)})" if created else ""),
                created=created,
                failed=len(errors),
            ) from errors[0]

        return issues
