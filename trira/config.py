"""Configuration from environment variables, optionally seeded from a .env file."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from trira.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes", "on"}


def load_env_file(env_file: str | Path, environ: dict[str, str] | None = None) -> None:
    """Copy ``KEY=value`` lines of ``env_file`` into the environment

    Variables already set in the environment are never overridden.
    A missing file is ignored.
    """
    environ = os.environ if environ is None else environ
    path = Path(env_file)
    if not path.exists():
        return

    with open(path) as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#") and "=" in line:
                key, value = line.split("=", 1)
                key = key.strip()
                value = value.strip().strip("'\"")
                if key not in environ:
                    environ[key] = value
    logger.debug("Loaded environment from %s", path)


def _flag(value: str | None, default: bool) -> bool:
    if value is None or not value.strip():
        return default
    return value.strip().lower() in _TRUTHY


@dataclass
class TriraConfig:
    """Credentials and connection settings for Trello and JIRA"""

    trello_key: str | None = None
    trello_token: str | None = None
    jira_host: str | None = None
    jira_username: str | None = None
    jira_password: str | None = None
    jira_gss_api: bool = False
    jira_strict_ssl: bool = True

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> TriraConfig:
        env = os.environ if environ is None else environ
        return cls(
            trello_key=env.get("TRELLO_API_KEY") or None,
            trello_token=env.get("TRELLO_TOKEN") or None,
            jira_host=env.get("JIRA_HOST") or None,
            jira_username=env.get("JIRA_USERNAME") or None,
            jira_password=env.get("JIRA_PASSWORD") or None,
            jira_gss_api=_flag(env.get("JIRA_GSSAPI"), default=False),
            jira_strict_ssl=_flag(env.get("JIRA_STRICT_SSL"), default=True),
        )

    def require_trello(self) -> None:
        """Raise ConfigurationError unless Trello credentials are present"""
        missing = []
        if not self.trello_key:
            missing.append("TRELLO_API_KEY")
        if not self.trello_token:
            missing.append("TRELLO_TOKEN")
        if missing:
            raise ConfigurationError(
                "Configuration for Trello has not been provided. "
                f"Set {', '.join(missing)} in your environment or .env file",
                missing=missing,
            )

    def require_jira(self) -> None:
        """Raise ConfigurationError unless JIRA can be contacted

        Username and password are only needed without Kerberos negotiation.
        """
        missing = []
        if not self.jira_host:
            missing.append("JIRA_HOST")
        if not self.jira_gss_api:
            if not self.jira_username:
                missing.append("JIRA_USERNAME")
            if not self.jira_password:
                missing.append("JIRA_PASSWORD")
        if missing:
            raise ConfigurationError(
                "Configuration for JIRA has not been provided. "
                f"Set {', '.join(missing)} (or JIRA_GSSAPI=true) in your environment or .env file",
                missing=missing,
            )


def load_config(env_file: str | None = None) -> TriraConfig:
    """Read configuration from the environment

    Args:
        env_file: Optional .env file; defaults to ``$TRIRA_ENV_FILE`` or ``.env``
    """
    load_env_file(env_file or os.getenv("TRIRA_ENV_FILE", ".env"))
    return TriraConfig.from_env()
