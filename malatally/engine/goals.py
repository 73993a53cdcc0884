"""Daily goal evaluation and settings resolution."""

import logging
from dataclasses import dataclass
from typing import Optional

from .models import (
    DailyGoal,
    DailyGoalType,
    DayCounts,
    GoalSettings,
    GoalSettingsOverride,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GoalStatus:
    """Progress towards today's goal."""

    progress: float  # 0.0 - 1.0
    progress_label: str  # e.g. "3/16"
    reached: bool


def total_beads(counts: DayCounts, settings: GoalSettings) -> int:
    """Beads counted today, completed rounds included."""
    return counts.round_count * settings.beads_per_round + counts.bead_count


def evaluate(counts: DayCounts, settings: GoalSettings) -> GoalStatus:
    """
    Evaluate today's counts against the daily goal.

    Args:
        counts: Live counters
        settings: Resolved goal settings

    Returns:
        GoalStatus with progress capped at 1.0
    """
    goal = settings.daily_goal

    if goal.type == DailyGoalType.ROUNDS:
        done = counts.round_count
    else:
        done = total_beads(counts, settings)

    return GoalStatus(
        progress=min(done / goal.value, 1.0),
        progress_label=f"{done}/{goal.value}",
        reached=done >= goal.value,
    )


def just_reached(status: GoalStatus, counts_before: DayCounts) -> bool:
    """True on the single increment that first reaches the goal today."""
    return status.reached and not counts_before.target_reached_today


def resolve_settings(
    defaults: GoalSettings, override: Optional[GoalSettingsOverride]
) -> GoalSettings:
    """
    Merge a partial override onto a profile's defaults.

    Any field missing from the override (including either half of the
    daily goal) keeps its default value.
    """
    if override is None:
        return defaults

    beads_per_round = override.beads_per_round or defaults.beads_per_round

    daily_goal = defaults.daily_goal
    if override.daily_goal is not None:
        daily_goal = DailyGoal(
            type=override.daily_goal.type or daily_goal.type,
            value=override.daily_goal.value or daily_goal.value,
        )

    resolved = GoalSettings(beads_per_round=beads_per_round, daily_goal=daily_goal)
    if resolved != defaults:
        logger.debug(f"Resolved settings override: {resolved.to_document()}")
    return resolved
