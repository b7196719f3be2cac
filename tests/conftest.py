"""
Shared pytest fixtures for trira tests
"""
import asyncio
import sys
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

# Add parent directory to path to import trira module
sys.path.insert(0, str(Path(__file__).parent.parent))

from trira import Checklist, RawCard, TrelloReader  # noqa: E402
from trira import rate_limiter as rate_limiter_module  # noqa: E402


@pytest.fixture
def trello_reader():
    """TrelloReader with fake credentials, no backoff and an always-open rate limiter"""
    reader = TrelloReader("test_key", "test_token", base_delay=0)
    reader.rate_limiter.acquire = AsyncMock(return_value=True)  # type: ignore[method-assign]
    return reader


@pytest.fixture
def make_card():
    """Factory for RawCard records"""

    def _make(card_id, name, list_id="list1", desc="", labels=()):
        return RawCard(
            id=card_id,
            name=name,
            description=desc,
            permalink=f"https://trello.com/c/{card_id}",
            list_id=list_id,
            labels=tuple(labels),
        )

    return _make


@pytest.fixture
def make_checklist():
    """Factory for Checklist records"""

    def _make(card_id, name, items=(), checklist_id=None):
        return Checklist(
            id=checklist_id or f"cl-{card_id}-{name}",
            name=name,
            card_id=card_id,
            items=tuple(items),
        )

    return _make


class FakeClock:
    """Virtual monotonic clock; sleeping advances it instead of waiting"""

    def __init__(self):
        self.now = 0.0
        self._sleep = asyncio.sleep

    def monotonic(self):
        return self.now

    async def sleep(self, delay):
        self.now += delay
        # Still yield so other coroutines get to run
        await self._sleep(0)


@pytest.fixture
def fake_clock():
    """Run RateLimiter on a virtual clock so pacing costs no wall time"""
    clock = FakeClock()
    with (
        patch.object(rate_limiter_module, "time", clock),
        patch.object(rate_limiter_module, "asyncio", SimpleNamespace(sleep=clock.sleep)),
    ):
        yield clock


class FakeGSSContext:
    """Stand-in for GSSClientContext recording how it was used"""

    token = "dG9rZW4="

    def __init__(self, service):
        self.service = service
        self.challenges = []
        self.entered = False
        self.released = False

    async def __aenter__(self):
        self.entered = True
        return self

    def step(self, challenge):
        self.challenges.append(challenge)
        return self.token

    async def __aexit__(self, exc_type, exc, tb):
        self.released = True


@pytest.fixture
def gss_contexts():
    """Context factory for CredentialNegotiator; created contexts are appended to .created"""

    class Factory:
        def __init__(self):
            self.created = []

        def __call__(self, service):
            context = FakeGSSContext(service)
            self.created.append(context)
            return context

    return Factory()
