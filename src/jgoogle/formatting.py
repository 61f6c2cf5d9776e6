"""Plain-text output helpers. Listings are tab-separated, one row per item."""

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Iterable, Optional

import click

SIZE_UNITS = ["B", "KB", "MB", "GB"]


def format_size(num_bytes: int) -> str:
    """Human-readable size, e.g. ``0 B``, ``1.5 KB``, ``3 MB``."""
    if num_bytes <= 0:
        return "0 B"
    value: float = num_bytes
    i = 0
    while value >= 1024 and i < len(SIZE_UNITS) - 1:
        value /= 1024
        i += 1
    value = round(value, 1)
    if value == int(value):
        value = int(value)
    return f"{value} {SIZE_UNITS[i]}"


def parse_date(value: str) -> Optional[datetime]:
    """Parse RFC 3339 (Drive, Calendar) or RFC 2822 (mail headers) timestamps."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        pass
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None


def format_date(value: str) -> str:
    """Format a timestamp as ``YYYY-MM-DD HH:MM`` in UTC; unparseable input is returned as is."""
    parsed = parse_date(value)
    if parsed is None:
        return value or ""
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.strftime("%Y-%m-%d %H:%M")


def clean(value: object) -> str:
    """Make a value safe for a TSV cell."""
    return str(value if value is not None else "").replace("\t", " ").replace("\n", " ")


def echo_row(*cells: object) -> None:
    click.echo("\t".join(clean(c) for c in cells))


def echo_table(header: Iterable[str], rows: Iterable[Iterable[object]]) -> None:
    echo_row(*header)
    for row in rows:
        echo_row(*row)


def echo_next_page(token: Optional[str]) -> None:
    if token:
        click.echo(f"\n# Next page: --page {token}")
