"""Card aggregation stage: fetch cards per list, then checklists per card, and merge."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from trira.fanout import fan_out
from trira.models import Checklist, RawCard, TrelloList
from trira.patterns import compile_pattern, name_filter
from trira.trello_client import TrelloReader

logger = logging.getLogger(__name__)


def merge_checklists(
    cards: Sequence[RawCard],
    checklists: Iterable[Checklist],
    log: logging.Logger | None = None,
) -> None:
    """Attach every checklist to the card(s) it belongs to

    Checklists are correlated by card id through an index built once, so
    the order in which they arrived does not matter. A checklist whose name
    is already present on the card replaces the earlier one.
    """
    log = log or logger
    by_id: dict[str, list[RawCard]] = {}
    for card in cards:
        by_id.setdefault(card.id, []).append(card)

    for checklist in checklists:
        owners = by_id.get(checklist.card_id)
        if not owners:
            log.debug(
                "Checklist '%s' belongs to unknown card %s", checklist.name, checklist.card_id
            )
            continue
        for card in owners:
            card.attach_checklist(checklist)


class CardAggregator:
    """Collect the cards of a set of lists together with their checklists"""

    def __init__(self, trello: TrelloReader, log: logging.Logger | None = None):
        self.trello = trello
        self.logger = log or logger

    async def collect(self, lists: Sequence[TrelloList], card_pattern: str) -> list[RawCard]:
        """Return cards matching ``card_pattern`` with their checklists merged

        Cards keep list order, then within-list order. Checklists are only
        fetched for cards whose name matches.

        Raises:
            FetchStageError: If any card or checklist fetch fails
        """
        pattern = compile_pattern(card_pattern)

        cards_per_list = await fan_out(
            self.trello.get_cards_on_list,
            [lst.id for lst in lists],
            stage="cards",
            limiter=self.trello.rate_limiter,
            log=self.logger,
        )
        all_cards = [card for list_cards in cards_per_list for card in list_cards]

        matches = name_filter(pattern)
        cards = [card for card in all_cards if matches(card)]
        self.logger.debug(
            "%d of %d cards match '%s', populating checklists",
            len(cards),
            len(all_cards),
            card_pattern,
        )

        checklists_per_card = await fan_out(
            self.trello.get_checklists_on_card,
            [card.id for card in cards],
            stage="checklists",
            limiter=self.trello.rate_limiter,
            log=self.logger,
        )
        merge_checklists(
            cards,
            (checklist for batch in checklists_per_card for checklist in batch),
            log=self.logger,
        )
        return cards
