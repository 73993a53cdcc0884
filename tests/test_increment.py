"""Tests for the single-bead increment."""

from datetime import date

import pytest

from malatally.engine.increment import increment, normalize
from malatally.engine.models import DailyGoal, DailyGoalType, DayCounts, GoalSettings

DAY = date(2024, 1, 3)


def settings_for(per_round=108, goal_type=DailyGoalType.ROUNDS, value=1):
    return GoalSettings(
        beads_per_round=per_round,
        daily_goal=DailyGoal(type=goal_type, value=value),
    )


def counts_for(beads=0, rounds=0, reached=False):
    return DayCounts(
        bead_count=beads,
        round_count=rounds,
        last_visit_date=DAY,
        target_reached_today=reached,
    )


@pytest.mark.parametrize("n", [0, 1, 107, 108, 109, 216, 500])
def test_n_increments_give_rounds_and_remainder(n):
    settings = settings_for(per_round=108, value=1000)
    counts = counts_for()

    for _ in range(n):
        counts = increment(counts, settings).counts

    assert counts.round_count == n // 108
    assert counts.bead_count == n % 108


def test_completing_a_round_reaches_one_round_goal():
    result = increment(counts_for(beads=107), settings_for(per_round=108, value=1))

    assert result.counts == counts_for(beads=0, rounds=1, reached=True)
    assert result.round_completed is True
    assert result.crossed_goal is True


def test_goal_crossing_fires_once_per_day():
    settings = settings_for(per_round=3, value=1)
    counts = counts_for()
    crossings = 0

    for _ in range(20):
        result = increment(counts, settings)
        counts = result.counts
        crossings += result.crossed_goal

    assert crossings == 1
    assert counts.target_reached_today is True


def test_beads_goal_crosses_mid_round():
    settings = settings_for(per_round=108, goal_type=DailyGoalType.BEADS, value=10)

    result = increment(counts_for(beads=9), settings)

    assert result.crossed_goal is True
    assert result.round_completed is False
    assert result.counts.bead_count == 10


def test_already_reached_flag_suppresses_crossing():
    result = increment(counts_for(beads=107, rounds=3, reached=True), settings_for(value=1))

    assert result.crossed_goal is False
    assert result.counts.round_count == 4
    assert result.counts.target_reached_today is True


def test_increment_keeps_date():
    result = increment(counts_for(), settings_for())
    assert result.counts.last_visit_date == DAY


def test_normalize_folds_surplus_beads_into_rounds():
    counts = normalize(counts_for(beads=50, rounds=1), settings_for(per_round=20))

    assert counts.round_count == 3
    assert counts.bead_count == 10


def test_normalize_leaves_valid_counts_alone():
    counts = counts_for(beads=5)
    assert normalize(counts, settings_for(per_round=20)) is counts
