"""CLI entry point for trira."""

from __future__ import annotations

import json
import logging
import sys

from trira.config import load_config
from trira.exceptions import TriraError
from trira.logging_config import setup_logging
from trira.patterns import DEFAULT_LIST_PATTERN, MATCH_ALL
from trira.pipeline import run_query, run_sync

logger = logging.getLogger("trira.cli")

# Module docstring for --help
__doc__ = """
trira - Sync Trello cards with JIRA epics

Usage:
    export TRELLO_API_KEY="your-key"
    export TRELLO_TOKEN="your-token"
    export JIRA_HOST="issues.example.com"
    export JIRA_USERNAME="you" JIRA_PASSWORD="secret"   # or JIRA_GSSAPI=true

    # Query Trello boards for cards matching a pattern (JSON output)
    trira query "Sprint.*" --list-regexp "To Do" --card-regexp "login"

    # Filter on card content (summary, description, checklists, labels)
    trira query "Sprint.*" --card-details-regexp "oauth"

    # Create a JIRA task per card under an epic
    trira sync "Sprint.*" PROJ-123

    # Preview without writing to JIRA
    trira sync "Sprint.*" PROJ-123 --dry-run

Options:
    --list-regexp REGEXP          Lists to fetch, repeatable (default: MUST PER (RELEASE|BUILD))
    --card-regexp REGEXP          Card names to fetch (default: .*)
    --card-details-regexp REGEXP  Card content filter, query only (default: .*)
    --dry-run, -n                 Do not push anything to JIRA (sync only)
    --verbose, -v / --quiet, -q   DEBUG / ERROR logging
    --log-level LEVEL             Explicit log level
    --log-file PATH               Also write logs to PATH

All patterns are case-insensitive regular expressions.
"""

_VALUE_OPTIONS = {
    "--list-regexp",
    "--card-regexp",
    "--card-details-regexp",
    "--log-level",
    "--log-file",
}


def _option_values(argv: list[str], name: str) -> list[str]:
    values = []
    for idx, arg in enumerate(argv):
        if arg == name:
            if idx + 1 >= len(argv):
                logger.error(f"❌ Error: {name} requires a value")
                sys.exit(1)
            values.append(argv[idx + 1])
    return values


def _positionals(argv: list[str]) -> list[str]:
    positionals = []
    skip = False
    for arg in argv:
        if skip:
            skip = False
        elif arg in _VALUE_OPTIONS:
            skip = True
        elif not arg.startswith("-"):
            positionals.append(arg)
    return positionals


def main() -> None:
    argv = sys.argv[1:]

    if "--help" in argv or "-h" in argv or not argv:
        print(__doc__)
        sys.exit(0)

    # Parse logging flags
    log_level = "INFO"
    log_file = None

    if "--verbose" in argv or "-v" in argv:
        log_level = "DEBUG"
    elif "--quiet" in argv or "-q" in argv:
        log_level = "ERROR"
    elif "--log-level" in argv:
        log_level = _option_values(argv, "--log-level")[-1].upper()

    if "--log-file" in argv:
        log_file = _option_values(argv, "--log-file")[-1]

    setup_logging(log_level, log_file)

    positionals = _positionals(argv)
    command, args = (positionals[0], positionals[1:]) if positionals else ("", [])

    list_patterns = _option_values(argv, "--list-regexp") or [DEFAULT_LIST_PATTERN]
    card_pattern = (_option_values(argv, "--card-regexp") or [MATCH_ALL])[-1]
    dry_run = "--dry-run" in argv or "-n" in argv

    expected_args = {"query": 1, "sync": 2}
    if command not in expected_args or len(args) != expected_args[command]:
        logger.error(f"❌ Error: unknown command or wrong arguments: {' '.join(positionals)}")
        logger.error("Usage: trira query <board-regexp> | trira sync <board-regexp> <epic>")
        sys.exit(1)

    config = load_config()

    try:
        if command == "query":
            content_pattern = (_option_values(argv, "--card-details-regexp") or [MATCH_ALL])[-1]
            cards = run_query(config, args[0], list_patterns, card_pattern, content_pattern)
            print(json.dumps([card.to_dict() for card in cards], indent=2))
            return

        if dry_run:
            logger.info("-- Dry run --")
        result = run_sync(config, args[0], args[1], list_patterns, card_pattern, dry_run)
    except TriraError as e:
        logger.error(f"❌ {type(e).__name__}: {e}")
        sys.exit(1)

    if result.dry_run:
        print(json.dumps([card.to_dict() for card in result.cards], indent=2))
        logger.info(
            f"Dry-run - otherwise would create {len(result.cards)} issues "
            f"linked to {result.epic_key}"
        )
        return

    logger.info(f"✅ Created {len(result.issues)} issues in epic {result.epic_key}")
    print(
        json.dumps(
            [
                {"key": issue.key, "url": f"https://{config.jira_host}/browse/{issue.key}"}
                for issue in result.issues
            ],
            indent=2,
        )
    )


if __name__ == "__main__":
    main()
