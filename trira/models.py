"""In-memory records for one pipeline run.

Trello entities are parsed from raw API dictionaries with ``from_api``; they
live only for the duration of a run and are never cached.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(frozen=True)
class Board:
    id: str
    name: str
    url: str = ""

    @classmethod
    def from_api(cls, data: dict) -> Board:
        return cls(id=data["id"], name=data.get("name", ""), url=data.get("url", ""))


@dataclass(frozen=True)
class TrelloList:
    """A column on a board"""

    id: str
    name: str
    board_id: str

    @classmethod
    def from_api(cls, data: dict) -> TrelloList:
        return cls(id=data["id"], name=data.get("name", ""), board_id=data.get("idBoard", ""))


@dataclass(frozen=True)
class Checklist:
    id: str
    name: str
    card_id: str
    items: tuple[str, ...] = ()

    @classmethod
    def from_api(cls, data: dict) -> Checklist:
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            card_id=data["idCard"],
            items=tuple(item["name"] for item in data.get("checkItems") or []),
        )


@dataclass
class RawCard:
    """A card as fetched from a list, plus the checklists merged onto it.

    ``checklists`` is keyed by checklist name; attaching a checklist whose
    name is already present replaces the earlier one.
    """

    id: str
    name: str
    description: str
    permalink: str
    list_id: str
    labels: tuple[str, ...] = ()
    checklists: dict[str, Checklist] = field(default_factory=dict)

    @classmethod
    def from_api(cls, data: dict) -> RawCard:
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            description=data.get("desc") or "",
            permalink=data.get("shortUrl") or data.get("url") or "",
            list_id=data.get("idList", ""),
            labels=tuple(label.get("name", "") for label in data.get("labels") or []),
        )

    def attach_checklist(self, checklist: Checklist) -> None:
        self.checklists[checklist.name] = checklist


@dataclass
class NormalizedCard:
    """Canonical, tracker-agnostic representation of a card.

    ``story_points`` is None when the card name carries no ``(<n>)``
    prefix; a prefix of ``(0)`` yields 0.0, which is a different thing.
    """

    summary: str
    story_points: float | None
    description: str
    permalink: str
    labels: list[str] = field(default_factory=list)
    checklists: dict[str, list[str]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class TrackerIssue:
    """An issue created in JIRA for one normalized card"""

    key: str
    epic_key: str
    fields: dict[str, Any] = field(default_factory=dict)
    id: str | None = None
