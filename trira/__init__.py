"""Sync Trello board cards with JIRA epics."""

from __future__ import annotations

# Import pipeline stages
from trira.aggregator import CardAggregator, merge_checklists

# Import CLI entry point
from trira.cli import main

# Import configuration
from trira.config import TriraConfig, load_config

# Import exceptions
from trira.exceptions import (
    ConfigurationError,
    EpicTypeMismatchError,
    FetchStageError,
    InvalidPatternError,
    IssueCreationError,
    JiraAPIError,
    JiraAuthenticationError,
    JiraNotFoundError,
    MissingCapabilityError,
    NegotiationError,
    NegotiationForbiddenError,
    NegotiationProtocolError,
    NoMatchError,
    NoMembershipError,
    TrelloAPIError,
    TrelloAuthenticationError,
    TrelloNotFoundError,
    TrelloRateLimitError,
    TrelloServerError,
    TriraError,
)

# Import issue creation
from trira.issues import IssueCreator

# Import JIRA client
from trira.jira_client import JiraClient, connect_jira

# Import Kerberos negotiation
from trira.kerberos_auth import CredentialNegotiator, GSSClientContext, NegotiationState

# Import logging configuration
from trira.logging_config import setup_logging

# Import records
from trira.models import Board, Checklist, NormalizedCard, RawCard, TrackerIssue, TrelloList
from trira.normalizer import normalize_card
from trira.pipeline import SyncPipeline, SyncResult, run_query, run_sync

# Import rate limiter
from trira.rate_limiter import RateLimiter
from trira.resolvers import BoardResolver, ListResolver

# Import Trello client
from trira.trello_client import TrelloReader

__version__ = "0.1.0"

__all__ = [
    # Pipeline
    "SyncPipeline",
    "SyncResult",
    "BoardResolver",
    "ListResolver",
    "CardAggregator",
    "merge_checklists",
    "normalize_card",
    "run_query",
    "run_sync",
    # Clients
    "TrelloReader",
    "JiraClient",
    "connect_jira",
    "IssueCreator",
    "CredentialNegotiator",
    "GSSClientContext",
    "NegotiationState",
    "RateLimiter",
    # Records
    "Board",
    "TrelloList",
    "RawCard",
    "Checklist",
    "NormalizedCard",
    "TrackerIssue",
    # Configuration and logging
    "TriraConfig",
    "load_config",
    "setup_logging",
    # Exceptions
    "TriraError",
    "ConfigurationError",
    "InvalidPatternError",
    "TrelloAPIError",
    "TrelloAuthenticationError",
    "TrelloNotFoundError",
    "TrelloRateLimitError",
    "TrelloServerError",
    "JiraAPIError",
    "JiraAuthenticationError",
    "JiraNotFoundError",
    "NoMembershipError",
    "NoMatchError",
    "FetchStageError",
    "NegotiationError",
    "NegotiationProtocolError",
    "NegotiationForbiddenError",
    "EpicTypeMismatchError",
    "MissingCapabilityError",
    "IssueCreationError",
    # CLI
    "main",
]
