"""Custom exception classes for trira.

This module defines the exception hierarchy for the Trello and JIRA API
clients and for the stages of the card synchronization pipeline.
"""

from __future__ import annotations


class TriraError(Exception):
    """Base exception for every error raised by trira"""

    pass


class ConfigurationError(TriraError):
    """Raised when required configuration values are missing"""

    def __init__(self, message: str, missing: list[str] | None = None):
        self.missing = missing or []
        super().__init__(message)


class InvalidPatternError(TriraError):
    """Raised when a user supplied regular expression cannot be compiled"""

    def __init__(self, message: str, pattern: str):
        self.pattern = pattern
        super().__init__(message)


class TrelloAPIError(TriraError):
    """Base exception for Trello API errors"""

    def __init__(
        self, message: str, status_code: int | None = None, response_text: str | None = None
    ):
        self.status_code = status_code
        self.response_text = response_text
        super().__init__(message)


class TrelloAuthenticationError(TrelloAPIError):
    """Raised when API credentials are invalid or expired (401/403)"""

    pass


class TrelloNotFoundError(TrelloAPIError):
    """Raised when an organization, board, list or card is not found (404)"""

    pass


class TrelloRateLimitError(TrelloAPIError):
    """Raised when rate limit is exceeded (429) after retries"""

    pass


class TrelloServerError(TrelloAPIError):
    """Raised when Trello's servers return an error (500/502/503/504)"""

    pass


class JiraAPIError(TriraError):
    """Base exception for JIRA REST API errors"""

    def __init__(
        self, message: str, status_code: int | None = None, response_text: str | None = None
    ):
        self.status_code = status_code
        self.response_text = response_text
        super().__init__(message)


class JiraAuthenticationError(JiraAPIError):
    """Raised when JIRA rejects the credentials or session cookie (401/403)"""

    pass


class JiraNotFoundError(JiraAPIError):
    """Raised when a JIRA issue or resource does not exist (404)"""

    pass


class NoMembershipError(TriraError):
    """Raised when the Trello user is not a member of any organization.

    Resolution:
        Join (or create) a Trello workspace with the account whose
        API token is configured.
    """

    pass


class NoMatchError(TriraError):
    """Raised when a board or list pattern matched nothing.

    Attributes:
        pattern: The regular expression that was applied
        stage: Pipeline stage that applied it ("board" or "list")
    """

    def __init__(self, message: str, pattern: str, stage: str):
        self.pattern = pattern
        self.stage = stage
        super().__init__(message)


class FetchStageError(TriraError):
    """Raised when any remote read inside a fan-out fails.

    The first failing request aborts the whole batch; the underlying
    transport or API error is available as ``cause`` (and ``__cause__``).
    """

    def __init__(self, message: str, stage: str, cause: BaseException | None = None):
        self.stage = stage
        self.cause = cause
        super().__init__(message)


class NegotiationError(TriraError):
    """Base exception for GSS/SPNEGO session negotiation failures"""

    def __init__(self, message: str, host: str, status_code: int | None = None):
        self.host = host
        self.status_code = status_code
        super().__init__(message)


class NegotiationProtocolError(NegotiationError):
    """Raised on transport failures or a missing/unexpected challenge.

    This can occur when:
    - the host cannot be reached
    - the first response is not a 401 carrying WWW-Authenticate
    - the second response is not a 200 carrying a JSESSIONID cookie
    - the local Kerberos library fails to build a token
    """

    pass


class NegotiationForbiddenError(NegotiationError):
    """Raised when the host answers 403 during negotiation.

    Unlike bad credentials, this points at a policy restriction or an
    incompatible Kerberos implementation on the client (e.g. macOS).
    """

    pass


class EpicTypeMismatchError(TriraError):
    """Raised when the referenced parent issue exists but is not an Epic"""

    def __init__(self, message: str, issue_key: str, issue_type: str | None):
        self.issue_key = issue_key
        self.issue_type = issue_type
        super().__init__(message)


class MissingCapabilityError(TriraError):
    """Raised when the JIRA instance lacks a required field (e.g. Epic Link)"""

    def __init__(self, message: str, field_name: str):
        self.field_name = field_name
        super().__init__(message)


class IssueCreationError(TriraError):
    """Raised when creating one or more issues under the epic failed.

    Issues created before the failure are not rolled back; their keys are
    listed in ``created`` so they can be cleaned up by hand.
    """

    def __init__(self, message: str, created: list[str] | None = None, failed: int = 0):
        self.created = created or []
        self.failed = failed
        super().__init__(message)
