"""Staged Trello → JIRA synchronization pipeline.

boards → lists → cards (+ checklists) → normalized cards → (optional) issues

Each stage waits for its whole batch of requests before the next one starts,
and any failure aborts the run.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from trira.aggregator import CardAggregator
from trira.config import TriraConfig
from trira.issues import IssueCreator
from trira.jira_client import JiraClient, connect_jira
from trira.models import NormalizedCard, TrackerIssue
from trira.normalizer import normalize_card
from trira.patterns import (
    DEFAULT_LIST_PATTERN,
    MATCH_ALL,
    card_matches_content,
    compile_pattern,
    join_patterns,
)
from trira.resolvers import BoardResolver, ListResolver
from trira.trello_client import TrelloReader

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Outcome of one sync run"""

    epic_key: str
    cards: list[NormalizedCard] = field(default_factory=list)
    issues: list[TrackerIssue] = field(default_factory=list)
    dry_run: bool = False

    @property
    def issue_keys(self) -> list[str]:
        return [issue.key for issue in self.issues]


class SyncPipeline:
    """Resolve a board pattern down to normalized cards and optionally push them to JIRA

    Example:
        >>> pipeline = SyncPipeline(TrelloReader(key, token))
        >>> cards = asyncio.run(pipeline.collect_cards("Sprint.*"))
    """

    def __init__(
        self,
        trello: TrelloReader,
        jira: JiraClient | None = None,
        log: logging.Logger | None = None,
    ):
        self.trello = trello
        self.jira = jira
        self.logger = log or logger
        self.boards = BoardResolver(trello, log=self.logger)
        self.lists = ListResolver(trello, log=self.logger)
        self.cards = CardAggregator(trello, log=self.logger)

    async def collect_cards(
        self,
        board_pattern: str,
        list_pattern: Iterable[str] | str | None = DEFAULT_LIST_PATTERN,
        card_pattern: str = MATCH_ALL,
    ) -> list[NormalizedCard]:
        """Normalized cards of the matching lists on the matching boards

        Raises:
            NoMembershipError, NoMatchError, FetchStageError, InvalidPatternError
        """
        list_expression = join_patterns(list_pattern)
        # Fail on a bad pattern before any request goes out
        for expression in (board_pattern, list_expression, card_pattern):
            compile_pattern(expression)

        boards = await self.boards.resolve(board_pattern)
        lists = await self.lists.resolve(boards, list_expression)
        raw_cards = await self.cards.collect(lists, card_pattern)
        return [normalize_card(card) for card in raw_cards]

    async def query(
        self,
        board_pattern: str,
        list_pattern: Iterable[str] | str | None = DEFAULT_LIST_PATTERN,
        card_pattern: str = MATCH_ALL,
        content_pattern: str = MATCH_ALL,
    ) -> list[NormalizedCard]:
        """Like collect_cards, additionally filtered by card content"""
        content = compile_pattern(content_pattern)
        cards = await self.collect_cards(board_pattern, list_pattern, card_pattern)
        self.logger.debug("Query contains %d cards prior to the content filter", len(cards))
        cards = [card for card in cards if card_matches_content(card, content)]
        self.logger.debug("Query contains %d cards after the content filter", len(cards))
        return cards

    async def sync(
        self,
        board_pattern: str,
        epic_key: str,
        list_pattern: Iterable[str] | str | None = DEFAULT_LIST_PATTERN,
        card_pattern: str = MATCH_ALL,
        dry_run: bool = False,
    ) -> SyncResult:
        """Create one JIRA issue per card under ``epic_key``

        In dry-run mode JIRA is not contacted at all.

        Raises:
            Any stage error of collect_cards, plus MissingCapabilityError,
            EpicTypeMismatchError and IssueCreationError from issue creation
        """
        cards = await self.collect_cards(board_pattern, list_pattern, card_pattern)
        self.logger.info(
            "%s create %d issues in JIRA epic %s",
            "Would" if dry_run else "Will",
            len(cards),
            epic_key,
        )
        if dry_run:
            return SyncResult(epic_key=epic_key, cards=cards, dry_run=True)

        if self.jira is None:
            raise ValueError("A JIRA client is required unless running in dry-run mode")
        issues = await IssueCreator(self.jira, log=self.logger).create_issues(cards, epic_key)
        return SyncResult(epic_key=epic_key, cards=cards, issues=issues)


def _trello_reader(config: TriraConfig) -> TrelloReader:
    config.require_trello()
    assert config.trello_key is not None and config.trello_token is not None
    return TrelloReader(config.trello_key, config.trello_token)


def run_query(
    config: TriraConfig,
    board_pattern: str,
    list_pattern: Iterable[str] | str | None = DEFAULT_LIST_PATTERN,
    card_pattern: str = MATCH_ALL,
    content_pattern: str = MATCH_ALL,
) -> list[NormalizedCard]:
    """Blocking entry point for ``SyncPipeline.query``"""
    pipeline = SyncPipeline(_trello_reader(config))
    return asyncio.run(pipeline.query(board_pattern, list_pattern, card_pattern, content_pattern))


def run_sync(
    config: TriraConfig,
    board_pattern: str,
    epic_key: str,
    list_pattern: Iterable[str] | str | None = DEFAULT_LIST_PATTERN,
    card_pattern: str = MATCH_ALL,
    dry_run: bool = False,
) -> SyncResult:
    """Blocking entry point for ``SyncPipeline.sync``; connects to JIRA unless dry-run"""
    trello = _trello_reader(config)

    async def _run() -> SyncResult:
        jira = None if dry_run else await connect_jira(config)
        pipeline = SyncPipeline(trello, jira)
        return await pipeline.sync(board_pattern, epic_key, list_pattern, card_pattern, dry_run)

    return asyncio.run(_run())
