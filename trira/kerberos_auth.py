"""Kerberos (SPNEGO) negotiation of a JIRA session cookie.

The handshake against ``https://<host>:443/step-auth-gss``:

1. GET without credentials, expect ``401`` with ``WWW-Authenticate: Negotiate``
2. Build a client token for ``HTTP@<host>`` from the challenge
3. GET again with ``Authorization: Negotiate <token>``, expect ``200``
4. Keep only the ``JSESSIONID`` cookie (``name=value``)

A ``403`` at either step means Kerberos auth is forbidden for this client.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Callable
from enum import Enum
from types import TracebackType
from typing import Any

import requests

from trira.exceptions import NegotiationForbiddenError, NegotiationProtocolError

logger = logging.getLogger(__name__)

GSS_PATH = "step-auth-gss"
SESSION_COOKIE_PREFIX = "JSESSIONID"

# Negotiate scheme, optionally followed by a base64 token, in a WWW-Authenticate value
_NEGOTIATE_CHALLENGE = re.compile(r"(?:^|,)\s*Negotiate(?:\s+([A-Za-z0-9+/=]+))?", re.IGNORECASE)

# Boundary between cookies when several Set-Cookie headers were folded into one
_COOKIE_BOUNDARY = re.compile(r",\s*(?=[^;,=\s]+=)")


class NegotiationState(Enum):
    INIT = "init"
    CHALLENGE_SENT = "challenge_sent"
    CONTEXT_ESTABLISHING = "context_establishing"
    RESPONSE_SENT = "response_sent"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


class GSSClientContext:
    """Kerberos client security context for a single negotiation attempt

    Use as an async context manager: the context is initialized on enter and
    cleaned up on exit, whatever happened in between. Every ``kerberos``
    call may block on the KDC or the credential cache, so entering and exiting
    run in a worker thread, and callers do the same for ``step``.

    Example:
        >>> async with GSSClientContext("HTTP@jira.example.com") as ctx:
        ...     token = await asyncio.to_thread(ctx.step, challenge)
    """

    def __init__(self, service: str, flags: int | None = None):
        try:
            import kerberos
        except ImportError as e:
            raise NegotiationProtocolError(
                "Kerberos support is not installed. Install it with: pip install 'trira[kerberos]'",
                host=service,
            ) from e

        self._kerberos = kerberos
        self.service = service
        self.flags = kerberos.GSS_C_MUTUAL_FLAG if flags is None else flags
        self._context: Any = None

    def init(self) -> None:
        try:
            _, self._context = self._kerberos.authGSSClientInit(self.service, gssflags=self.flags)
        except self._kerberos.KrbError as e:
            raise NegotiationProtocolError(
                f"Kerberos init failed: {e}", host=self.service
            ) from e
        logger.debug("Initialized Kerberos context for %s", self.service)

    def step(self, challenge: str) -> str:
        """Feed the server challenge and return the base64 client token"""
        try:
            self._kerberos.authGSSClientStep(self._context, challenge)
            return str(self._kerberos.authGSSClientResponse(self._context))
        except self._kerberos.KrbError as e:
            raise NegotiationProtocolError(
                f"Kerberos auth failed: {e}", host=self.service
            ) from e

    def release(self) -> None:
        """Clean up the context; a second call does nothing"""
        if self._context is None:
            return
        context, self._context = self._context, None
        self._kerberos.authGSSClientClean(context)
        logger.debug("Released Kerberos context for %s", self.service)

    async def __aenter__(self) -> GSSClientContext:
        await asyncio.to_thread(self.init)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await asyncio.to_thread(self.release)


def parse_negotiate_challenge(header: str | None) -> str | None:
    """Extract the token of a ``Negotiate`` challenge

    Returns:
        The token ("" for a bare ``Negotiate``), or None if the header
        carries no Negotiate challenge
    """
    if not header:
        return None
    match = _NEGOTIATE_CHALLENGE.search(header)
    if not match:
        return None
    return match.group(1) or ""


def extract_session_cookie(set_cookie: str | None) -> str | None:
    """Return ``name=value`` of the first JSESSIONID cookie, attributes stripped

    Example:
        >>> extract_session_cookie("JSESSIONID=abc123; Path=/; HttpOnly")
        'JSESSIONID=abc123'
    """
    if not set_cookie:
        return None
    for cookie in _COOKIE_BOUNDARY.split(set_cookie):
        cookie = cookie.strip()
        if cookie.startswith(SESSION_COOKIE_PREFIX):
            return cookie.split(";", 1)[0].strip()
    return None


class CredentialNegotiator:
    """Obtain a JIRA session cookie through a Kerberos challenge/response

    One instance performs one attempt at a time and never retries; each
    attempt creates exactly one security context and releases it before
    ``negotiate()`` returns or raises.
    """

    def __init__(
        self,
        host: str,
        strict_ssl: bool = True,
        context_factory: Callable[[str], GSSClientContext] = GSSClientContext,
        timeout: float = 30.0,
        log: logging.Logger | None = None,
    ):
        self.host = host
        self.strict_ssl = strict_ssl
        self.context_factory = context_factory
        self.timeout = timeout
        self.logger = log or logger
        self.state = NegotiationState.INIT

    @property
    def url(self) -> str:
        return f"https://{self.host}:443/{GSS_PATH}"

    @property
    def service_principal(self) -> str:
        return f"HTTP@{self.host}"

    async def negotiate(self) -> str:
        """Run the handshake and return the ``JSESSIONID=<value>`` cookie

        Raises:
            NegotiationForbiddenError: If the host answers 403
            NegotiationProtocolError: On transport errors, a missing challenge,
                a failed Kerberos step or a missing session cookie
        """
        self.state = NegotiationState.INIT
        self.logger.debug("Negotiating GSS Auth with %s", self.host)
        try:
            with requests.Session() as session:
                cookie = await self._handshake(session)
        except BaseException:
            self.state = NegotiationState.FAILED
            raise
        self.state = NegotiationState.AUTHENTICATED
        return cookie

    async def _handshake(self, session: requests.Session) -> str:
        self.state = NegotiationState.CHALLENGE_SENT
        response = await self._get(session)
        self._raise_if_forbidden(response)

        challenge = parse_negotiate_challenge(response.headers.get("WWW-Authenticate"))
        if response.status_code != 401 or challenge is None:
            raise NegotiationProtocolError(
                f"Expected a Negotiate challenge from {self.url}, "
                f"got HTTP {response.status_code} without one",
                host=self.host,
                status_code=response.status_code,
            )
        self.logger.debug("SPNEGO challenge %s", response.headers.get("WWW-Authenticate"))

        self.state = NegotiationState.CONTEXT_ESTABLISHING
        async with self.context_factory(self.service_principal) as context:
            token = await asyncio.to_thread(context.step, challenge)
        self.logger.debug("Acquired Kerberos ticket negotiation data")

        self.state = NegotiationState.RESPONSE_SENT
        response = await self._get(session, {"Authorization": f"Negotiate {token}"})
        self._raise_if_forbidden(response)

        if response.status_code != 200:
            raise NegotiationProtocolError(
                f"Kerberos token was not accepted by {self.host} (HTTP {response.status_code})",
                host=self.host,
                status_code=response.status_code,
            )

        cookie = extract_session_cookie(response.headers.get("Set-Cookie"))
        if not cookie:
            raise NegotiationProtocolError(
                f"{self.host} accepted the Kerberos token "
                f"but sent no {SESSION_COOKIE_PREFIX} cookie",
                host=self.host,
                status_code=response.status_code,
            )
        return cookie

    async def _get(
        self, session: requests.Session, headers: dict[str, str] | None = None
    ) -> requests.Response:
        try:
            return await asyncio.to_thread(
                session.get,
                self.url,
                headers=headers or {},
                verify=self.strict_ssl,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise NegotiationProtocolError(
                f"Unable to reach {self.url}: {e}", host=self.host
            ) from e

    def _raise_if_forbidden(self, response: requests.Response) -> None:
        if response.status_code == 403:
            raise NegotiationForbiddenError(
                "Kerberos based auth has been forbidden. You might not have enough rights "
                "or an incompatible Kerberos implementation (macOS)",
                host=self.host,
                status_code=403,
            )
