"""Date-keyed log of completed days."""

import logging
from datetime import date
from typing import Iterable

from ..errors import HistoryConflict
from .models import DayCounts, HistoryEntry

logger = logging.getLogger(__name__)


def sort_history(entries: Iterable[HistoryEntry]) -> list[HistoryEntry]:
    """Most recent day first."""
    return sorted(entries, key=lambda entry: entry.day, reverse=True)


def normalize_history(entries: Iterable[HistoryEntry]) -> list[HistoryEntry]:
    """Keep the first entry seen for each date, ordered most recent first."""
    seen: set[date] = set()
    unique = []
    for entry in entries:
        if entry.day in seen:
            logger.warning(f"Dropping duplicate history entry for {entry.day}")
            continue
        seen.add(entry.day)
        unique.append(entry)
    return sort_history(unique)


def find_entry(history: list[HistoryEntry], day: date) -> HistoryEntry | None:
    for entry in history:
        if entry.day == day:
            return entry
    return None


def archive_day(
    history: list[HistoryEntry], counts: DayCounts
) -> tuple[list[HistoryEntry], bool]:
    """
    Record a finished day's rounds.

    Days without progress are not recorded, and a date that already has an
    entry is never recorded twice.

    Returns:
        Tuple of (history, whether an entry was added)
    """
    if not counts.has_progress:
        return history, False

    if find_entry(history, counts.last_visit_date) is not None:
        logger.info(f"History already has {counts.last_visit_date}, not archiving")
        return history, False

    entry = HistoryEntry(day=counts.last_visit_date, rounds=counts.round_count)
    return sort_history([entry, *history]), True


def edit_entry(
    history: list[HistoryEntry], day: date, replacement: HistoryEntry
) -> list[HistoryEntry]:
    """
    Replace the entry for ``day``.

    Raises:
        KeyError: No entry exists for ``day``
        HistoryConflict: The replacement moves onto another existing date
    """
    if find_entry(history, day) is None:
        raise KeyError(day)

    if replacement.day != day and find_entry(history, replacement.day) is not None:
        raise HistoryConflict(f"History already has an entry for {replacement.day}")

    return sort_history(
        [replacement if entry.day == day else entry for entry in history]
    )


def delete_entry(history: list[HistoryEntry], day: date) -> list[HistoryEntry]:
    """Remove the entry for ``day``. Raises KeyError if absent."""
    if find_entry(history, day) is None:
        raise KeyError(day)
    return [entry for entry in history if entry.day != day]


def history_rounds(history: list[HistoryEntry]) -> int:
    return sum(entry.rounds for entry in history)
