"""Day-continuity streak.

Two states: no streak (count 0, no date) and an active streak of n days ending
on last_date. A streak only advances on the increment that first reaches the
daily goal, and is invalidated lazily when a profile is loaded.
"""

from datetime import date

from .clock import previous_day
from .models import StreakState


def refresh_on_load(streak: StreakState, today: date) -> StreakState:
    """Drop a streak whose last goal day is older than yesterday."""
    if streak.last_date in (today, previous_day(today)):
        return streak
    return StreakState()


def next_streak(streak: StreakState, today: date, goal_just_reached: bool) -> StreakState:
    """
    Advance the streak for a goal-crossing event today.

    Args:
        streak: Current streak
        today: Current calendar date
        goal_just_reached: Whether the daily goal was just crossed

    Returns:
        The new streak (unchanged if nothing to count)
    """
    if not goal_just_reached or streak.last_date == today:
        return streak

    if streak.last_date == previous_day(today):
        return StreakState(count=streak.count + 1, last_date=today)

    return StreakState(count=1, last_date=today)
