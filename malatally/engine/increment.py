"""Single-bead advance of the live counters."""

from dataclasses import dataclass

from .goals import evaluate, just_reached
from .models import DayCounts, GoalSettings


@dataclass(frozen=True)
class IncrementResult:
    counts: DayCounts
    crossed_goal: bool  # celebration + streak advance
    round_completed: bool  # bead count wrapped


def increment(counts: DayCounts, settings: GoalSettings) -> IncrementResult:
    """
    Count one bead.

    The bead counter wraps to zero when it reaches beads_per_round, adding a
    round. The goal is checked against the new counts but with the flag from
    before the increment, so crossing happens at most once per day.

    Args:
        counts: Counters before the increment
        settings: Resolved goal settings

    Returns:
        IncrementResult with the new counters and the events it produced
    """
    bead_count = counts.bead_count + 1
    round_count = counts.round_count
    round_completed = False

    if bead_count >= settings.beads_per_round:
        round_count += 1
        bead_count = 0
        round_completed = True

    tentative = counts.model_copy(
        update={"bead_count": bead_count, "round_count": round_count}
    )
    crossed_goal = just_reached(evaluate(tentative, settings), counts)

    next_counts = tentative.model_copy(
        update={"target_reached_today": counts.target_reached_today or crossed_goal}
    )
    return IncrementResult(
        counts=next_counts,
        crossed_goal=crossed_goal,
        round_completed=round_completed,
    )


def normalize(counts: DayCounts, settings: GoalSettings) -> DayCounts:
    """Fold surplus beads into rounds after beads_per_round shrinks."""
    if counts.bead_count < settings.beads_per_round:
        return counts
    extra_rounds, beads = divmod(counts.bead_count, settings.beads_per_round)
    return counts.model_copy(
        update={"bead_count": beads, "round_count": counts.round_count + extra_rounds}
    )
