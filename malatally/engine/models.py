"""Progress state models.

Persisted documents keep the camelCase field names of the storage format
(``beadCount``, ``lastVisitDate``, ``lastDate`` ...). Python code works with the
snake_case attribute names; both are accepted when parsing.
"""

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator


class StateModel(BaseModel):
    """Base for persisted state documents."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def to_document(self) -> dict:
        """Dump to the JSON-compatible storage document."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class DayCounts(StateModel):
    """Live counters for the current calendar day."""

    bead_count: int = Field(0, ge=0, alias="beadCount")
    round_count: int = Field(0, ge=0, alias="roundCount")
    last_visit_date: date = Field(alias="lastVisitDate")
    target_reached_today: bool = Field(False, alias="targetReachedToday")

    @classmethod
    def fresh(cls, day: date) -> "DayCounts":
        """Zeroed counters dated ``day``."""
        return cls(
            bead_count=0,
            round_count=0,
            last_visit_date=day,
            target_reached_today=False,
        )

    @property
    def has_progress(self) -> bool:
        return self.bead_count > 0 or self.round_count > 0


class StreakState(StateModel):
    """Consecutive days on which the daily goal was reached."""

    count: int = Field(0, ge=0)
    last_date: Optional[date] = Field(None, alias="lastDate")

    @model_validator(mode="after")
    def check_active_pairing(self):
        if (self.count > 0) != (self.last_date is not None):
            raise ValueError("count > 0 requires lastDate and vice versa")
        return self

    @property
    def active(self) -> bool:
        return self.count > 0

    def to_document(self) -> dict:
        # lastDate is always written, null included
        return self.model_dump(mode="json", by_alias=True)


class HistoryEntry(StateModel):
    """Rounds completed on a past day."""

    day: date = Field(alias="date")
    rounds: int = Field(ge=0)


class DailyGoalType(str, Enum):
    """Unit the daily goal is measured in."""

    ROUNDS = "rounds"
    BEADS = "beads"


class DailyGoal(StateModel):
    type: DailyGoalType
    value: int = Field(gt=0)


class GoalSettings(StateModel):
    """Fully resolved goal settings for a profile."""

    beads_per_round: int = Field(gt=0, alias="beadsPerRound")
    daily_goal: DailyGoal = Field(alias="dailyGoal")


class DailyGoalOverride(StateModel):
    type: Optional[DailyGoalType] = None
    value: Optional[int] = Field(None, gt=0)


class GoalSettingsOverride(StateModel):
    """Per-profile settings override. Missing fields fall back to defaults."""

    beads_per_round: Optional[int] = Field(None, gt=0, alias="beadsPerRound")
    daily_goal: Optional[DailyGoalOverride] = Field(None, alias="dailyGoal")


class Profile(StateModel):
    """A named namespace of progress state."""

    id: str
    name: str
    storage_prefix: str = Field(alias="storagePrefix")
    defaults: GoalSettings


class ProfileSnapshot(StateModel):
    """Everything persisted for one profile."""

    counts: DayCounts
    history: list[HistoryEntry] = Field(default_factory=list)
    streak: StreakState = Field(default_factory=StreakState)
    settings: Optional[GoalSettingsOverride] = None


HISTORY_ADAPTER = TypeAdapter(list[HistoryEntry])
