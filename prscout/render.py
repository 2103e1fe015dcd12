"""
Table and JSON output for Prscout results.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from datetime import datetime
from typing import Any, Callable

import click

from .aggregate import ResultRow


HEADERS = ["PR #", "Last Updated", "Title", "URL", "Author", "+/-"]
TIME_FORMAT = "%Y-%m-%d %H:%M %Z"
UNKNOWN = "Unknown"


def format_updated(updated_at: datetime | None) -> str:
    """Format a timestamp in local time."""
    if updated_at is None:
        return UNKNOWN
    return updated_at.astimezone().strftime(TIME_FORMAT)


def _cells(row: ResultRow) -> list[tuple[str, Callable[[str], str]]]:
    """Plain cell text paired with the style applied after padding."""
    pr, stat = row.pr, row.stat
    author = f"@{pr.author}" if pr.author else UNKNOWN

    def diff_style(_: str) -> str:
        added = click.style(str(stat.additions), fg="green")
        removed = click.style(str(stat.deletions), fg="red")
        return f"+{added}/-{removed}"

    return [
        (str(pr.number), lambda s: click.style(s, bold=True)),
        (format_updated(pr.updated_at), lambda s: click.style(s, fg="yellow") if pr.updated_at else s),
        (pr.title or "No title", lambda s: click.style(s, bold=True)),
        (pr.html_url or UNKNOWN, lambda s: click.style(s, underline=True)),
        (author, lambda s: click.style(s, fg="green")),
        (f"+{stat.additions}/-{stat.deletions}", diff_style),
    ]


def render_table(rows: Sequence[ResultRow], color: bool | None = None) -> None:
    """Print rows as an aligned table with a header line."""
    cells = [_cells(row) for row in rows]
    widths = [len(h) for h in HEADERS]
    for row_cells in cells:
        for i, (text, _) in enumerate(row_cells):
            widths[i] = max(widths[i], len(text))

    header = "  ".join(h.ljust(widths[i]) for i, h in enumerate(HEADERS))
    click.echo(header.rstrip(), color=color)

    for row_cells in cells:
        parts = []
        for i, (text, style) in enumerate(row_cells):
            # Pad outside the styled text so escape codes don't count towards width
            padding = " " * (widths[i] - len(text)) if i < len(row_cells) - 1 else ""
            parts.append(style(text) + padding)
        click.echo("  ".join(parts), color=color)


def rows_to_json(rows: Sequence[ResultRow]) -> list[dict[str, Any]]:
    return [
        {
            "number": row.pr.number,
            "updated_at": row.pr.updated_at.isoformat() if row.pr.updated_at else None,
            "title": row.pr.title,
            "url": row.pr.html_url,
            "author": row.pr.author,
            "additions": row.stat.additions,
            "deletions": row.stat.deletions,
        }
        for row in rows
    ]


def render_json(rows: Sequence[ResultRow]) -> None:
    click.echo(json.dumps(rows_to_json(rows), indent=2))
