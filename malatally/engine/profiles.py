"""Built-in profiles."""

from typing import Optional

from .models import DailyGoal, DailyGoalType, GoalSettings, Profile

BEADS_PER_MALA = 108

BUILTIN_PROFILES: dict[str, Profile] = {
    "OM": Profile(
        id="OM",
        name="Om",
        storage_prefix="om",
        defaults=GoalSettings(
            beads_per_round=BEADS_PER_MALA,
            daily_goal=DailyGoal(type=DailyGoalType.ROUNDS, value=1),
        ),
    ),
    "HK": Profile(
        id="HK",
        name="Hare Krishna",
        storage_prefix="hk",
        defaults=GoalSettings(
            beads_per_round=BEADS_PER_MALA,
            daily_goal=DailyGoal(type=DailyGoalType.ROUNDS, value=16),
        ),
    ),
}


def get_profile(
    profile_id: str, profiles: Optional[dict[str, Profile]] = None
) -> Optional[Profile]:
    """Look up a profile by id."""
    return (profiles or BUILTIN_PROFILES).get(profile_id)
