"""Tests for streak transitions."""

from datetime import date

import pytest

from malatally.engine.clock import Clock, previous_day
from malatally.engine.models import StreakState
from malatally.engine.streak import next_streak, refresh_on_load

TODAY = date(2024, 1, 3)
YESTERDAY = date(2024, 1, 2)


def test_goal_after_yesterday_extends_streak():
    streak = next_streak(StreakState(count=4, last_date=YESTERDAY), TODAY, True)
    assert streak == StreakState(count=5, last_date=TODAY)


@pytest.mark.parametrize(
    "previous",
    [
        StreakState(),
        StreakState(count=9, last_date=date(2023, 12, 31)),
        StreakState(count=2, last_date=date(2024, 1, 10)),
    ],
)
def test_goal_after_gap_starts_new_streak(previous):
    assert next_streak(previous, TODAY, True) == StreakState(count=1, last_date=TODAY)


def test_second_goal_today_is_noop():
    streak = StreakState(count=3, last_date=TODAY)
    assert next_streak(streak, TODAY, True) is streak


def test_no_goal_event_leaves_streak():
    streak = StreakState(count=3, last_date=YESTERDAY)
    assert next_streak(streak, TODAY, False) is streak


@pytest.mark.parametrize("last_date", [TODAY, YESTERDAY])
def test_recent_streak_survives_load(last_date):
    streak = StreakState(count=7, last_date=last_date)
    assert refresh_on_load(streak, TODAY) is streak


@pytest.mark.parametrize("last_date", [date(2024, 1, 1), date(2023, 6, 1), date(2024, 2, 1)])
def test_stale_streak_resets_on_load(last_date):
    streak = StreakState(count=7, last_date=last_date)
    assert refresh_on_load(streak, TODAY) == StreakState(count=0, last_date=None)


def test_streak_requires_date_when_active():
    with pytest.raises(ValueError):
        StreakState(count=2, last_date=None)


def test_clock_yesterday_is_previous_day():
    clock = Clock("UTC")
    assert clock.yesterday() == previous_day(clock.today())
    assert previous_day(date(2024, 3, 1)) == date(2024, 2, 29)
