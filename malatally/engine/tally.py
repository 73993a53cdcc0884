"""The tally engine: every operation a UI shell performs on a profile.

All operations are synchronous and complete before returning. State changes are
committed to the Session first and persisted afterwards through the profile
store, whose load gate drops writes from sessions whose profile is no longer
active.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Callable, Optional

from ..backup.codec import BackupCodec
from ..storage.profile_store import ProfileStore, StateKind
from .clock import Clock
from .day_cycle import DayCycleManager
from .goals import GoalStatus, evaluate, resolve_settings
from .history import delete_entry, edit_entry
from .increment import IncrementResult, increment, normalize
from .models import (
    DailyGoalOverride,
    DayCounts,
    GoalSettings,
    GoalSettingsOverride,
    HistoryEntry,
    Profile,
    ProfileSnapshot,
    StreakState,
)
from .profiles import BUILTIN_PROFILES
from .report import ProfileReport, build_report
from .session import Session
from .streak import next_streak

logger = logging.getLogger(__name__)

# Receives a prompt, returns True if the user agreed
Confirm = Callable[[str], bool]


class EventType(str, Enum):
    ROUND_COMPLETE = "round_complete"
    GOAL_REACHED = "goal_reached"
    STATE_RESTORED = "state_restored"


@dataclass(frozen=True)
class EngineEvent:
    """Side effect for external collaborators (sound, celebration, refresh)."""

    type: EventType
    profile_id: str
    data: dict[str, Any] = field(default_factory=dict)


class RestoreOutcome(str, Enum):
    RESTORED = "restored"
    CANCELLED = "cancelled"
    SUPERSEDED = "superseded"


RESTORE_PROMPT = "Restoring replaces your current progress, history and streak. Continue?"
RESET_PROMPT = "Reset today's progress? This can't be undone."


class TallyEngine:
    """Counting, rollover, streak, settings and restore for named profiles."""

    def __init__(
        self,
        store: ProfileStore,
        clock: Clock,
        profiles: Optional[dict[str, Profile]] = None,
        default_profile: str = "OM",
    ):
        """
        Initialize engine.

        Args:
            store: Namespaced persistence
            clock: Source of today's date
            profiles: Known profiles by id (built-ins if omitted)
            default_profile: Profile activated when none was saved
        """
        self.store = store
        self.clock = clock
        self.profiles = profiles or BUILTIN_PROFILES
        self.default_profile = default_profile
        self.day_cycle = DayCycleManager(clock)
        self.codec = BackupCodec(self.profiles, clock)
        self._listeners: list[Callable[[EngineEvent], None]] = []

    def subscribe(self, listener: Callable[[EngineEvent], None]):
        self._listeners.append(listener)

    def _emit(self, event_type: EventType, profile_id: str, **data):
        event = EngineEvent(type=event_type, profile_id=profile_id, data=data)
        for listener in self._listeners:
            listener(event)

    def list_profiles(self) -> list[Profile]:
        return list(self.profiles.values())

    def get_profile(self, profile_id: str) -> Profile:
        """Raises KeyError for unknown profile ids."""
        return self.profiles[profile_id]

    def activate(self, profile_id: Optional[str] = None) -> Session:
        """
        Make a profile active and load its state, rolling over a stale day.

        Args:
            profile_id: Profile to activate; defaults to the last active one

        Returns:
            A new Session for the profile
        """
        if profile_id is None:
            saved = self.store.saved_active_profile_id()
            profile_id = saved if saved in self.profiles else self.default_profile

        profile = self.get_profile(profile_id)
        logger.info(f"Activating profile {profile.id} ({profile.name})")

        with self.store.load_scope(profile) as loader:
            state = self.day_cycle.load(loader)

        return Session(profile=profile, state=state)

    def is_active(self, session: Session) -> bool:
        return self.store.active_profile_id == session.profile_id

    def status(self, session: Session) -> GoalStatus:
        return evaluate(session.state.counts, session.state.settings)

    def increment(self, session: Session) -> IncrementResult:
        """
        Count one bead for the session's profile.

        Emits ROUND_COMPLETE when a round wraps and GOAL_REACHED (advancing
        the streak) the first time today's goal is reached.
        """
        self._ensure_today(session)
        state = session.state
        today = state.counts.last_visit_date

        result = increment(state.counts, state.settings)
        state.counts = result.counts
        if result.crossed_goal:
            state.streak = next_streak(state.streak, today, goal_just_reached=True)

        self._persist(session, StateKind.COUNTS, state.counts)
        if result.crossed_goal:
            self._persist(session, StateKind.STREAK, state.streak)

        if result.round_completed:
            self._emit(
                EventType.ROUND_COMPLETE,
                session.profile_id,
                round_count=state.counts.round_count,
            )
        if result.crossed_goal:
            logger.info(
                f"Daily goal reached for {session.profile_id}, streak {state.streak.count}"
            )
            self._emit(
                EventType.GOAL_REACHED,
                session.profile_id,
                streak=state.streak.count,
            )
        return result

    def reset_today(self, session: Session, confirm: Confirm) -> bool:
        """
        Zero today's counters after confirmation. History and streak are kept.

        Returns:
            True if reset, False if the user declined
        """
        if not confirm(RESET_PROMPT):
            return False

        self._ensure_today(session)
        session.state.counts = session.state.counts.model_copy(
            update={"bead_count": 0, "round_count": 0, "target_reached_today": False}
        )
        self._persist(session, StateKind.COUNTS, session.state.counts)
        logger.info(f"Reset today's progress for {session.profile_id}")
        return True

    def update_settings(
        self, session: Session, override: GoalSettingsOverride
    ) -> GoalSettings:
        """
        Apply a partial settings change on top of the stored override.

        Returns:
            The resolved settings now in effect
        """
        state = session.state
        combined = _combine_overrides(state.override, override)
        state.override = combined
        state.settings = resolve_settings(session.profile.defaults, combined)
        state.counts = normalize(state.counts, state.settings)

        self._persist(session, StateKind.SETTINGS, combined)
        self._persist(session, StateKind.COUNTS, state.counts)
        return state.settings

    def clear_settings(self, session: Session) -> GoalSettings:
        """Drop the override and return to the profile's defaults."""
        state = session.state
        state.override = None
        state.settings = session.profile.defaults
        state.counts = normalize(state.counts, state.settings)

        if self.store.remove(session.profile, StateKind.SETTINGS):
            self._persist(session, StateKind.COUNTS, state.counts)
        return state.settings

    def edit_history(
        self, session: Session, day: date, replacement: HistoryEntry
    ) -> list[HistoryEntry]:
        """
        Replace the history entry for ``day``.

        Raises:
            KeyError: No entry for ``day``
            HistoryConflict: ``replacement`` moves onto another recorded date
        """
        session.state.history = edit_entry(session.state.history, day, replacement)
        self._persist(session, StateKind.HISTORY, session.state.history)
        return session.state.history

    def delete_history(self, session: Session, day: date) -> list[HistoryEntry]:
        """Remove the history entry for ``day``. Raises KeyError if absent."""
        session.state.history = delete_entry(session.state.history, day)
        self._persist(session, StateKind.HISTORY, session.state.history)
        return session.state.history

    def report(self, session: Session) -> ProfileReport:
        return build_report(session)

    def read_snapshot(self, profile: Profile) -> ProfileSnapshot:
        """Stored state of any profile, as is (no rollover)."""
        return ProfileSnapshot(
            counts=self.store.read(profile, StateKind.COUNTS)
            or DayCounts.fresh(self.clock.today()),
            history=self.store.read(profile, StateKind.HISTORY) or [],
            streak=self.store.read(profile, StateKind.STREAK) or StreakState(),
            settings=self.store.read(profile, StateKind.SETTINGS),
        )

    def export_profile(self, session: Session) -> bytes:
        return self.codec.export_profile(session.profile_id, session.state.snapshot())

    def export_all(self, session: Session) -> bytes:
        """Export every known profile; the active one from its live state."""
        snapshots = {
            profile.id: (
                session.state.snapshot()
                if profile.id == session.profile_id
                else self.read_snapshot(profile)
            )
            for profile in self.profiles.values()
        }
        return self.codec.export_profiles(snapshots)

    def restore(self, session: Session, data: bytes, confirm: Confirm) -> RestoreOutcome:
        """
        Replace profile state with a backup.

        The payload is validated before anything else; an invalid payload
        raises BackupInvalid and nothing is written. The user then confirms;
        declining changes nothing. Each targeted profile's counts, history and
        streak are overwritten, and the session's profile is reloaded into
        ``session``. A session whose profile is no longer the active
        one writes nothing and gets SUPERSEDED.

        Raises:
            BackupInvalid: The payload is not a recognizable backup
        """
        document = self.codec.validate(data)
        targets = self.codec.targets(document, session.profile_id)

        if not self.is_active(session):
            logger.warning(
                f"Restore for {session.profile_id} skipped; "
                f"{self.store.active_profile_id} is active now"
            )
            return RestoreOutcome.SUPERSEDED

        if not confirm(RESTORE_PROMPT):
            logger.info("Restore cancelled by user")
            return RestoreOutcome.CANCELLED

        for profile_id, incoming in targets.items():
            profile = self.get_profile(profile_id)
            current = (
                session.state.snapshot()
                if profile_id == session.profile_id
                else self.read_snapshot(profile)
            )
            self._replace(profile, self.codec.merge(current, incoming))

        session.state = self.activate(session.profile_id).state
        logger.info(f"Restored {', '.join(targets)} from backup")
        self._emit(EventType.STATE_RESTORED, session.profile_id, profiles=list(targets))
        return RestoreOutcome.RESTORED

    def _replace(self, profile: Profile, snapshot: ProfileSnapshot):
        with self.store.load_scope(profile) as loader:
            loader.write(StateKind.COUNTS, snapshot.counts)
            loader.write(StateKind.HISTORY, snapshot.history)
            loader.write(StateKind.STREAK, snapshot.streak)
            if snapshot.settings is not None:
                loader.write(StateKind.SETTINGS, snapshot.settings)

    def _ensure_today(self, session: Session):
        """Roll a session over if it was left open past midnight."""
        if session.state.counts.last_visit_date == self.clock.today():
            return
        if not self.is_active(session):
            return
        logger.info(f"Day changed during session for {session.profile_id}")
        session.state = self.activate(session.profile_id).state

    def _persist(self, session: Session, kind: StateKind, value: Any):
        if not self.store.write(session.profile, kind, value):
            logger.warning(
                f"Dropped {kind.value} write for inactive profile {session.profile_id}"
            )


def _combine_overrides(
    current: Optional[GoalSettingsOverride], change: GoalSettingsOverride
) -> GoalSettingsOverride:
    if current is None:
        return change

    goal = current.daily_goal
    if change.daily_goal is not None:
        goal = DailyGoalOverride(
            type=change.daily_goal.type or (goal.type if goal else None),
            value=change.daily_goal.value or (goal.value if goal else None),
        )

    return GoalSettingsOverride(
        beads_per_round=change.beads_per_round or current.beads_per_round,
        daily_goal=goal,
    )
