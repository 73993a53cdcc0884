"""Explicit per-profile session context passed to every engine call."""

from dataclasses import dataclass, field
from typing import Optional

from .models import (
    DayCounts,
    GoalSettings,
    GoalSettingsOverride,
    HistoryEntry,
    Profile,
    ProfileSnapshot,
    StreakState,
)


@dataclass
class ProfileState:
    """The loaded, UI-facing state of one profile."""

    counts: DayCounts
    settings: GoalSettings
    history: list[HistoryEntry] = field(default_factory=list)
    streak: StreakState = field(default_factory=StreakState)
    override: Optional[GoalSettingsOverride] = None

    def snapshot(self) -> ProfileSnapshot:
        return ProfileSnapshot(
            counts=self.counts,
            history=list(self.history),
            streak=self.streak,
            settings=self.override,
        )


@dataclass
class Session:
    """An activated profile and the state the engine owns for it."""

    profile: Profile
    state: ProfileState

    @property
    def profile_id(self) -> str:
        return self.profile.id
