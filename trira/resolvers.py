"""Board and list resolution stages of the Trello card pipeline."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from trira.exceptions import NoMatchError, NoMembershipError
from trira.fanout import fan_out
from trira.models import Board, TrelloList
from trira.patterns import compile_pattern, name_filter
from trira.trello_client import TrelloReader

logger = logging.getLogger(__name__)


def _flatten_unique(batches: Iterable[Iterable[Board]]) -> list[Board]:
    seen: set[str] = set()
    unique: list[Board] = []
    for batch in batches:
        for board in batch:
            if board.id not in seen:
                seen.add(board.id)
                unique.append(board)
    return unique


class BoardResolver:
    """Find the boards, across all of a member's organizations, matching a name pattern"""

    def __init__(self, trello: TrelloReader, log: logging.Logger | None = None):
        self.trello = trello
        self.logger = log or logger

    async def organizations(self, member_id: str = "me") -> list[str]:
        """Ids of the organizations the member belongs to

        Raises:
            NoMembershipError: If the member belongs to no organization
            FetchStageError: If the member lookup fails
        """
        (member,) = await fan_out(
            self.trello.get_member,
            [member_id],
            stage="membership",
            limiter=self.trello.rate_limiter,
            log=self.logger,
        )
        org_ids = list(member.get("idOrganizations") or [])
        if not org_ids:
            raise NoMembershipError("This user is not a member of any organization")
        return org_ids

    async def resolve(self, board_pattern: str, member_id: str = "me") -> list[Board]:
        """Return matching boards, duplicate-free by board id

        Raises:
            NoMembershipError: If the member belongs to no organization
            NoMatchError: If no board name matches ``board_pattern``
            FetchStageError: If any remote read fails
        """
        pattern = compile_pattern(board_pattern)
        org_ids = await self.organizations(member_id)

        boards_per_org = await fan_out(
            self.trello.get_org_boards,
            org_ids,
            stage="boards",
            limiter=self.trello.rate_limiter,
            log=self.logger,
        )
        matches = name_filter(pattern)
        boards = [b for b in _flatten_unique(boards_per_org) if matches(b)]

        if not boards:
            raise NoMatchError(
                f"There is no board matching '{board_pattern}' associated with that user",
                pattern=board_pattern,
                stage="board",
            )

        self.logger.debug(
            "Found %d boards matching %s: %s",
            len(boards),
            board_pattern,
            [b.name for b in boards],
        )
        return boards


class ListResolver:
    """Find the lists on a set of boards matching a name pattern"""

    def __init__(self, trello: TrelloReader, log: logging.Logger | None = None):
        self.trello = trello
        self.logger = log or logger

    async def resolve(self, boards: Sequence[Board], list_pattern: str) -> list[TrelloList]:
        """Return matching lists in board order

        A board contributing no matching list is simply skipped.

        Raises:
            NoMatchError: If no list on any board matches ``list_pattern``
            FetchStageError: If any remote read fails
        """
        pattern = compile_pattern(list_pattern)
        lists_per_board = await fan_out(
            self.trello.get_lists_on_board,
            [b.id for b in boards],
            stage="lists",
            limiter=self.trello.rate_limiter,
            log=self.logger,
        )
        matches = name_filter(pattern)
        lists = [lst for board_lists in lists_per_board for lst in board_lists if matches(lst)]

        if not lists:
            raise NoMatchError(
                f"There are no lists matching '{list_pattern}' within matching boards",
                pattern=list_pattern,
                stage="list",
            )

        self.logger.debug(
            "There are %d associated lists: %s", len(lists), [lst.name for lst in lists]
        )
        return lists
