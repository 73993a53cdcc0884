"""Per-profile persistence of progress state.

Every profile owns four keys, ``{prefix}_counts``, ``{prefix}_history``,
``{prefix}_streak`` and ``{prefix}_settings``, each holding a JSON document.

Writes are gated by a per-profile load phase. A profile is ``LOADING`` from the
moment it becomes active until its initial load finishes, and only the active
profile in the ``READY`` phase accepts writes. This keeps a late write issued
for a previous profile from landing after a fast profile switch.
"""

import json
import logging
from contextlib import contextmanager
from enum import Enum
from typing import Any, Iterator, Optional

from pydantic import ValidationError

from ..engine.models import (
    HISTORY_ADAPTER,
    DayCounts,
    GoalSettingsOverride,
    Profile,
    StreakState,
)
from ..errors import StorageCorrupt
from .blob_store import BlobStore

logger = logging.getLogger(__name__)

ACTIVE_PROFILE_KEY = "active_profile"


class StateKind(str, Enum):
    """The documents stored for each profile."""

    COUNTS = "counts"
    HISTORY = "history"
    STREAK = "streak"
    SETTINGS = "settings"


class LoadPhase(str, Enum):
    LOADING = "loading"
    READY = "ready"


_PARSERS = {
    StateKind.COUNTS: DayCounts.model_validate_json,
    StateKind.HISTORY: HISTORY_ADAPTER.validate_json,
    StateKind.STREAK: StreakState.model_validate_json,
    StateKind.SETTINGS: GoalSettingsOverride.model_validate_json,
}


def storage_key(profile: Profile, kind: StateKind) -> str:
    return f"{profile.storage_prefix}_{kind.value}"


def encode(kind: StateKind, value: Any) -> str:
    """Serialize a state value to its JSON document."""
    if kind == StateKind.HISTORY:
        return json.dumps([entry.to_document() for entry in value])
    return json.dumps(value.to_document())


def decode(kind: StateKind, key: str, raw: str) -> Any:
    """
    Parse a stored JSON document.

    Raises:
        StorageCorrupt: The document is not valid JSON or has the wrong shape
    """
    try:
        return _PARSERS[kind](raw)
    except (ValidationError, ValueError) as e:
        raise StorageCorrupt(key, str(e)) from e


class ProfileStore:
    """Namespaced state persistence with a load/write gate."""

    def __init__(self, blobs: BlobStore):
        self.blobs = blobs
        self.active_profile_id: Optional[str] = None
        self._phases: dict[str, LoadPhase] = {}

    def phase(self, profile_id: str) -> LoadPhase:
        return self._phases.get(profile_id, LoadPhase.LOADING)

    def is_writable(self, profile: Profile) -> bool:
        return (
            profile.id == self.active_profile_id
            and self.phase(profile.id) == LoadPhase.READY
        )

    def read(self, profile: Profile, kind: StateKind) -> Optional[Any]:
        """
        Read one state document.

        Returns:
            The parsed value, or None when absent or corrupt
        """
        key = storage_key(profile, kind)
        raw = self.blobs.get(key)
        if raw is None:
            return None

        try:
            return decode(kind, key, raw)
        except StorageCorrupt as e:
            logger.warning(f"{e}; using defaults")
            return None

    def write(self, profile: Profile, kind: StateKind, value: Any) -> bool:
        """
        Persist one state document if the profile is active and loaded.

        Returns:
            True if written, False if suppressed by the load gate
        """
        if not self.is_writable(profile):
            logger.debug(
                f"Suppressed {kind.value} write for {profile.id} "
                f"(active={self.active_profile_id}, phase={self.phase(profile.id).value})"
            )
            return False

        self._put(profile, kind, value)
        return True

    def remove(self, profile: Profile, kind: StateKind) -> bool:
        if not self.is_writable(profile):
            return False
        self.blobs.remove(storage_key(profile, kind))
        return True

    def _put(self, profile: Profile, kind: StateKind, value: Any):
        self.blobs.set(storage_key(profile, kind), encode(kind, value))

    @contextmanager
    def load_scope(self, profile: Profile) -> Iterator["ProfileLoader"]:
        """
        Make ``profile`` active and run its initial load.

        The profile stays LOADING (rejecting ordinary writes) until the block
        exits without error; the yielded loader may write in the meantime.
        """
        self.active_profile_id = profile.id
        self._phases = {profile.id: LoadPhase.LOADING}
        self.blobs.set(ACTIVE_PROFILE_KEY, profile.id)

        loader = ProfileLoader(self, profile)
        try:
            yield loader
        finally:
            loader.closed = True

        if self.active_profile_id == profile.id:
            self._phases[profile.id] = LoadPhase.READY
            logger.debug(f"Profile {profile.id} ready")

    def saved_active_profile_id(self) -> Optional[str]:
        return self.blobs.get(ACTIVE_PROFILE_KEY)


class ProfileLoader:
    """Read/write access for a profile while it is being loaded."""

    def __init__(self, store: ProfileStore, profile: Profile):
        self.store = store
        self.profile = profile
        self.closed = False

    def read(self, kind: StateKind) -> Optional[Any]:
        return self.store.read(self.profile, kind)

    def write(self, kind: StateKind, value: Any) -> bool:
        if self.closed or self.store.active_profile_id != self.profile.id:
            logger.debug(f"Suppressed stale load write of {kind.value} for {self.profile.id}")
            return False
        self.store._put(self.profile, kind, value)
        return True
