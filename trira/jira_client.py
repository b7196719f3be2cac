"""JIRA REST API (v2) client used to create issues under an epic."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, cast

import requests

from trira.config import TriraConfig
from trira.exceptions import JiraAPIError, JiraAuthenticationError, JiraNotFoundError
from trira.kerberos_auth import CredentialNegotiator

logger = logging.getLogger(__name__)


class JiraClient:
    """Minimal JIRA client: field definitions, issue lookup and issue creation

    Authenticates either with username/password (basic auth) or with a
    session cookie obtained through Kerberos negotiation. Requests are not
    retried; creating an issue is not idempotent.
    """

    def __init__(
        self,
        host: str,
        username: str | None = None,
        password: str | None = None,
        cookie: str | None = None,
        strict_ssl: bool = True,
        timeout: float = 30.0,
    ):
        self.host = host
        self.base_url = f"https://{host}:443/rest/api/2"
        self.timeout = timeout

        self.session = requests.Session()
        self.session.verify = strict_ssl
        self.session.headers.update({"Accept": "application/json"})
        if cookie:
            # Cookie based auth only; never send a password alongside it
            self.session.headers["Cookie"] = cookie
        elif username:
            self.session.auth = (username, password or "")

    def _request(self, method: str, path: str, payload: dict | None = None) -> Any:
        url = f"{self.base_url}/{path}"
        logger.debug("%s %s", method, url)
        try:
            response = self.session.request(method, url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else 0
            response_text = e.response.text if e.response is not None else ""
            if status_code in (401, 403):
                raise JiraAuthenticationError(
                    f"JIRA rejected the request for {path} (HTTP {status_code}).\n"
                    "Check JIRA_USERNAME/JIRA_PASSWORD or your Kerberos ticket.",
                    status_code=status_code,
                    response_text=response_text,
                ) from e
            if status_code == 404:
                raise JiraNotFoundError(
                    f"JIRA resource not found: {path}",
                    status_code=status_code,
                    response_text=response_text,
                ) from e
            raise JiraAPIError(
                f"HTTP {status_code} error for {path}: {response_text[:200]}",
                status_code=status_code,
                response_text=response_text,
            ) from e
        except requests.RequestException as e:
            raise JiraAPIError(f"Request to JIRA {path} failed: {e}") from e

    def list_fields(self) -> list[dict]:
        """All field definitions, system and custom"""
        return cast(list[dict], self._request("GET", "field"))

    def find_issue(self, key: str) -> dict:
        return cast(dict, self._request("GET", f"issue/{key}"))

    def create_issue(self, payload: dict) -> dict:
        """Create an issue; returns JIRA's ``{"id", "key", "self"}`` reply"""
        return cast(dict, self._request("POST", "issue", payload))

    def browse_url(self, key: str) -> str:
        return f"https://{self.host}/browse/{key}"


async def connect_jira(
    config: TriraConfig,
    negotiator_factory: Callable[..., CredentialNegotiator] = CredentialNegotiator,
) -> JiraClient:
    """Build a JIRA client from configuration

    With ``gss_api`` enabled, a session cookie is negotiated first and the
    configured username/password are ignored.

    Raises:
        ConfigurationError: If the JIRA configuration is incomplete
        NegotiationForbiddenError, NegotiationProtocolError: If negotiation fails
    """
    config.require_jira()
    assert config.jira_host is not None

    if config.jira_gss_api:
        logger.debug("Negotiating GSS Auth with %s", config.jira_host)
        negotiator = negotiator_factory(config.jira_host, strict_ssl=config.jira_strict_ssl)
        cookie = await negotiator.negotiate()
        return JiraClient(config.jira_host, cookie=cookie, strict_ssl=config.jira_strict_ssl)

    return JiraClient(
        config.jira_host,
        username=config.jira_username,
        password=config.jira_password,
        strict_ssl=config.jira_strict_ssl,
    )
