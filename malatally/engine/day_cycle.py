"""Profile loading and day rollover."""

import logging
from datetime import date

from ..storage.profile_store import ProfileLoader, StateKind
from .clock import Clock
from .goals import resolve_settings
from .history import archive_day, normalize_history
from .increment import normalize
from .models import DayCounts, HistoryEntry, StreakState
from .session import ProfileState
from .streak import refresh_on_load

logger = logging.getLogger(__name__)


class DayCycleManager:
    """Loads a profile's state, archiving the previous day when the date changed."""

    def __init__(self, clock: Clock):
        """Initialize with the clock that defines "today"."""
        self.clock = clock

    def load(self, loader: ProfileLoader) -> ProfileState:
        """
        Load persisted state for the profile being activated.

        Absent or corrupt documents are replaced by defaults. If the stored
        counters belong to another day (earlier, or later after clock skew) the
        day is archived into history and the counters are reset. Running this
        twice on the same stored state gives the same result.

        Args:
            loader: Load-phase access to the profile's documents

        Returns:
            ProfileState ready for counting
        """
        profile = loader.profile
        today = self.clock.today()

        override = loader.read(StateKind.SETTINGS)
        settings = resolve_settings(profile.defaults, override)

        stored_history = loader.read(StateKind.HISTORY) or []
        history = normalize_history(stored_history)
        if len(history) != len(stored_history):
            loader.write(StateKind.HISTORY, history)
        counts, history = self.roll_over(loader, loader.read(StateKind.COUNTS), history, today)
        counts = normalize(counts, settings)

        stored_streak = loader.read(StateKind.STREAK) or StreakState()
        streak = refresh_on_load(stored_streak, today)
        if streak != stored_streak:
            logger.info(
                f"Streak of {stored_streak.count} for {profile.id} lapsed "
                f"(last goal day {stored_streak.last_date})"
            )
            loader.write(StateKind.STREAK, streak)

        logger.info(
            f"Loaded {profile.id}: {counts.round_count} rounds + {counts.bead_count} beads "
            f"today, {len(history)} history days, streak {streak.count}"
        )
        return ProfileState(
            counts=counts,
            settings=settings,
            history=history,
            streak=streak,
            override=override,
        )

    def roll_over(
        self,
        loader: ProfileLoader,
        counts: DayCounts | None,
        history: list[HistoryEntry],
        today: date,
    ) -> tuple[DayCounts, list[HistoryEntry]]:
        """
        Re-arm the counters for ``today``.

        Returns:
            Tuple of (counts, history)
        """
        if counts is None:
            fresh = DayCounts.fresh(today)
            loader.write(StateKind.COUNTS, fresh)
            return fresh, history

        if counts.last_visit_date == today:
            return counts, history

        history, added = archive_day(history, counts)
        if added:
            logger.info(
                f"Archived {counts.last_visit_date} for {loader.profile.id}: "
                f"{counts.round_count} rounds"
            )
            loader.write(StateKind.HISTORY, history)

        fresh = DayCounts.fresh(today)
        loader.write(StateKind.COUNTS, fresh)
        return fresh, history
