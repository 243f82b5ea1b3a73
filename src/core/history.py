# SPDX-License-Identifier: MIT
"""Delimited-text export of the allocation activity log."""

from __future__ import annotations

import csv
import io
from datetime import date, datetime, timezone
from typing import Iterable

from models import HistoryEntry

# Column names are part of the export format consumed downstream.
HEADER = ("id", "type", "date", "juridiction", "canal", "createdAt")


def format_timestamp(value: datetime) -> str:
    """Return ``value`` as an ISO-8601 UTC timestamp ending in ``Z``."""

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    stamp = value.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return stamp.replace("+00:00", "Z")


def _row(entry: HistoryEntry) -> tuple[str, ...]:
    return (
        entry.id,
        entry.type.value,
        entry.date,
        entry.jurisdiction,
        entry.channel,
        format_timestamp(entry.created_at),
    )


def format_history_csv(entries: Iterable[HistoryEntry]) -> str:
    """Return ``entries`` as comma separated rows under a header row.

    Every field is double-quoted and embedded quotes are doubled. Rows are
    separated by ``\\n`` with no trailing newline.
    """

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(HEADER)
    writer.writerows(_row(entry) for entry in entries)
    return buffer.getvalue().rstrip("\n")


def default_export_name(today: date | None = None) -> str:
    """Return the conventional file name for an export made on ``today``."""

    day = today or datetime.now(timezone.utc).date()
    return f"hexref_history_{day.isoformat()}.csv"


__all__ = ["HEADER", "default_export_name", "format_history_csv", "format_timestamp"]
