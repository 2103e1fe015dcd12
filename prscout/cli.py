"""
Prscout CLI - List the pull requests in a repository that concern you.

A PR concerns you when you are a requested reviewer or assignee, one of
your teams is a requested reviewer, the PR description mentions you, or
(with --comments) a review comment mentions you or was written by you.
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys

import click
from dotenv import load_dotenv

# Load .env file from current directory or repo root
load_dotenv()
from .config import get_repo_root
try:
    load_dotenv(get_repo_root() / ".env")
except OSError:
    pass

from . import __version__
from .aggregate import LookupFailure, TaskJoinError, find_concerning_prs
from .config import VALID_STATES, MAX_PAGE_SIZE, ConfigError, PrscoutConfig
from .github import GitHubAPIError, GitHubClient
from .render import render_json, render_table


logger = logging.getLogger(__name__)

LOG_LEVEL_ENV = "PRSCOUT_LOG_LEVEL"


def configure_logging(verbose: bool = False) -> None:
    """Log to stderr; --verbose wins over PRSCOUT_LOG_LEVEL."""
    level = "DEBUG" if verbose else os.environ.get(LOG_LEVEL_ENV, "WARNING").upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def parse_repo(value: str) -> tuple[str | None, str]:
    """
    Split "owner/repo" into its parts.

    A bare "repo" has no owner; the caller uses the viewer's login.

    Raises:
        ValueError: for empty parts or more than one "/"
    """
    parts = value.strip().split("/")
    if len(parts) == 1 and parts[0]:
        return None, parts[0]
    if len(parts) == 2 and all(parts):
        return parts[0], parts[1]
    raise ValueError(f"Invalid repository name: {value!r}")


def fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


@click.command()
@click.version_option(version=__version__)
@click.option("-r", "--repo", required=True, help="Repository as owner/repo, or repo for your own")
@click.option("-c", "--comments/--no-comments", default=None, help="Also scan review comments for mentions")
@click.option("-s", "--state", type=click.Choice(VALID_STATES), default=None, help="PR state filter (default: open)")
@click.option("-l", "--last", type=click.IntRange(1, MAX_PAGE_SIZE), default=None, help="Number of PRs to look at (default: 50)")
@click.option("--max-concurrency", type=click.IntRange(min=1), default=None, help="Maximum simultaneous GitHub lookups (default: 8)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
def main(
    repo: str,
    comments: bool | None,
    state: str | None,
    last: int | None,
    max_concurrency: int | None,
    as_json: bool,
    verbose: bool,
):
    """List the pull requests in a repository that concern you.

    Examples:

        prscout -r octo-org/octo-repo          # Open PRs concerning you

        prscout -r dotfiles -s all             # Your own repository

        prscout -r octo-org/octo-repo -c -l 100
    """
    configure_logging(verbose)

    try:
        config = PrscoutConfig.load(get_repo_root())
        token = config.require_token()
    except ConfigError as e:
        fail(str(e))

    try:
        owner, name = parse_repo(repo)
    except ValueError:
        fail("Invalid repository name")

    # Use config defaults, allow CLI overrides
    defaults = config.defaults
    scan_comments = defaults.comments if comments is None else comments
    pr_state = state or defaults.state
    page_size = last or defaults.last
    concurrency = max_concurrency or defaults.max_concurrency

    client = GitHubClient(token=token, api_url=config.api_url)

    try:
        login = None
        if owner is None:
            login = client.current_user()
            owner = login
        logger.debug("Looking at %s/%s (state=%s, last=%d)", owner, name, pr_state, page_size)

        rows = asyncio.run(find_concerning_prs(
            client,
            owner,
            name,
            state=pr_state,
            last=page_size,
            comments=scan_comments,
            max_concurrency=concurrency,
            login=login,
        ))
    except (GitHubAPIError, LookupFailure, TaskJoinError) as e:
        fail(str(e))

    if as_json:
        render_json(rows)
    else:
        render_table(rows)


if __name__ == "__main__":
    main()
