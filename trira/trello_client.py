"""Trello API client with retry logic.

Every method is a single blocking read; the pipeline runs them concurrently
through ``trira.fanout`` and paces them with the reader's ``rate_limiter``.
"""

from __future__ import annotations

import logging
import time
from typing import Any, cast

import requests

from trira.exceptions import (
    TrelloAPIError,
    TrelloAuthenticationError,
    TrelloNotFoundError,
    TrelloRateLimitError,
    TrelloServerError,
)
from trira.models import Board, Checklist, RawCard, TrelloList
from trira.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class TrelloReader:
    """Read organizations, boards, lists, cards and checklists from Trello

    Trello API rate limits (per token):
    - 100 requests per 10 seconds = 10 req/sec sustained
    - 300 requests per 10 seconds per API key = 30 req/sec

    We use 10 req/sec with burst allowance of 10 for conservative usage.
    """

    base_url = "https://api.trello.com/1"

    def __init__(
        self,
        api_key: str,
        token: str,
        verify_ssl: bool = True,
        max_retries: int = 3,
        base_delay: float = 1.0,
    ):
        self.api_key = api_key
        self.token = token
        self.verify_ssl = verify_ssl
        self.max_retries = max_retries
        self.base_delay = base_delay

        # Shared by every fan-out batch issued against this reader
        self.rate_limiter = RateLimiter(requests_per_second=10.0, burst_allowance=10)

    def _request(self, endpoint: str, params: dict | None = None) -> Any:
        """Make authenticated request to Trello API with retry logic"""
        url = f"{self.base_url}/{endpoint}"
        auth_params = {"key": self.api_key, "token": self.token}
        if params:
            auth_params.update(params)

        retry_statuses = {429, 500, 502, 503, 504}  # Transient errors

        last_exception: requests.RequestException | None = None
        for attempt in range(self.max_retries):
            try:
                logger.debug("GET %s (attempt %d)", endpoint, attempt + 1)
                response = requests.get(url, params=auth_params, timeout=30, verify=self.verify_ssl)
                response.raise_for_status()
                return cast(Any, response.json())

            except requests.HTTPError as e:
                last_exception = e
                status_code = e.response.status_code if e.response is not None else 0
                response_text = e.response.text if e.response is not None else ""

                if status_code not in retry_statuses:
                    if status_code in (401, 403):
                        raise TrelloAuthenticationError(
                            f"Trello rejected the request for {endpoint} (HTTP {status_code}).\n"
                            "Check your TRELLO_API_KEY and TRELLO_TOKEN.\n"
                            "Get credentials at: https://trello.com/power-ups/admin",
                            status_code=status_code,
                            response_text=response_text,
                        ) from e
                    elif status_code == 404:
                        raise TrelloNotFoundError(
                            f"Resource not found: {endpoint}",
                            status_code=status_code,
                            response_text=response_text,
                        ) from e
                    else:
                        raise TrelloAPIError(
                            f"HTTP {status_code} error for {endpoint}: {response_text[:200]}",
                            status_code=status_code,
                            response_text=response_text,
                        ) from e

                # Don't delay after last attempt
                if attempt < self.max_retries - 1:
                    delay = self.base_delay * (2**attempt)  # Exponential backoff: 1s, 2s, 4s
                    logger.debug("HTTP %d for %s, retrying in %.1fs", status_code, endpoint, delay)
                    time.sleep(delay)

            except requests.RequestException as e:
                # Network errors, timeouts, undecodable bodies
                last_exception = e
                if attempt < self.max_retries - 1:
                    time.sleep(self.base_delay * (2**attempt))
                else:
                    raise TrelloAPIError(
                        f"Network error after {self.max_retries} attempts: {e}\n"
                        "Check your internet connection and try again.",
                    ) from e

        # All retries exhausted for transient HTTP errors
        if isinstance(last_exception, requests.HTTPError):
            response = last_exception.response
            status_code = response.status_code if response is not None else 0
            response_text = response.text if response is not None else ""

            if status_code == 429:
                raise TrelloRateLimitError(
                    f"Rate limit exceeded after {self.max_retries} retry attempts.\n"
                    "Trello's API rate limit: 100 requests per 10 seconds.\n"
                    "Wait a few minutes and try again.",
                    status_code=status_code,
                    response_text=response_text,
                ) from last_exception
            raise TrelloServerError(
                f"Trello server error (HTTP {status_code}) persisted after "
                f"{self.max_retries} retries.\n"
                "Trello's servers may be experiencing issues. Try again later.",
                status_code=status_code,
                response_text=response_text,
            ) from last_exception

        raise TrelloAPIError(f"Request to {endpoint} failed after {self.max_retries} retries")

    def get_member(self, member_id: str = "me") -> dict:
        """Get a member with the ids of the organizations it belongs to"""
        return cast(
            dict,
            self._request(f"members/{member_id}", {"fields": "id,username,idOrganizations"}),
        )

    def get_org_boards(self, org_id: str) -> list[Board]:
        """Get every board of an organization"""
        boards = self._request(f"organizations/{org_id}/boards", {"fields": "id,name,url,closed"})
        return [Board.from_api(b) for b in boards]

    def get_lists_on_board(self, board_id: str) -> list[TrelloList]:
        """Get all lists on a board"""
        lists = self._request(f"boards/{board_id}/lists", {"fields": "id,name,idBoard,pos"})
        return [TrelloList.from_api(lst) for lst in lists]

    def get_cards_on_list(self, list_id: str) -> list[RawCard]:
        """Get all cards of a list, in list order"""
        cards = self._request(
            f"lists/{list_id}/cards", {"fields": "id,name,desc,shortUrl,idList,labels"}
        )
        return [RawCard.from_api(card) for card in cards]

    def get_checklists_on_card(self, card_id: str) -> list[Checklist]:
        """Get all checklists attached to a card, with their items"""
        checklists = self._request(
            f"cards/{card_id}/checklists",
            {"checkItems": "all", "checkItem_fields": "name,pos,state", "fields": "name,idCard"},
        )
        return [Checklist.from_api(cl) for cl in checklists]
