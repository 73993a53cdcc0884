"""Lifetime totals and per-day rows for progress reports."""

from dataclasses import dataclass
from datetime import date

from .goals import total_beads
from .history import history_rounds
from .models import GoalSettings, StreakState
from .session import Session


@dataclass(frozen=True)
class ReportDay:
    day: date
    rounds: int
    beads: int


@dataclass(frozen=True)
class ProfileReport:
    """Everything a report renderer needs for one profile."""

    profile_id: str
    profile_name: str
    total_beads: int
    total_rounds: int
    streak: StreakState
    settings: GoalSettings
    days: list[ReportDay]


def build_report(session: Session) -> ProfileReport:
    """
    Summarize a profile's history plus today's progress.

    Beads for past days are derived from rounds with the profile's current
    beads_per_round.
    """
    state = session.state
    per_round = state.settings.beads_per_round

    days = [
        ReportDay(day=entry.day, rounds=entry.rounds, beads=entry.rounds * per_round)
        for entry in state.history
    ]

    return ProfileReport(
        profile_id=session.profile.id,
        profile_name=session.profile.name,
        total_beads=history_rounds(state.history) * per_round
        + total_beads(state.counts, state.settings),
        total_rounds=history_rounds(state.history) + state.counts.round_count,
        streak=state.streak,
        settings=state.settings,
        days=days,
    )
