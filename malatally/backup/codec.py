"""Backup documents: export, validation and restore merge.

Three document shapes are accepted when importing:

- single profile: ``{"counts": ..., "history": ..., "streak": ...}``, optionally
  tagged with ``profile`` and carrying ``settings``
- multi profile: ``{"profiles": {"<profile id>": {"counts": ...}, ...}}``
- storage blob: a dump of the local store, ``{"om_counts": "<json>", ...}``

Exports use the first two shapes and add ``app``, ``version`` and
``exportedAt`` so files describe themselves.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Union

from pydantic import ValidationError

from ..engine.clock import Clock
from ..engine.history import normalize_history
from ..engine.models import (
    HISTORY_ADAPTER,
    DayCounts,
    GoalSettingsOverride,
    Profile,
    ProfileSnapshot,
    StreakState,
)
from ..errors import BackupInvalid, BackupInvalidReason
from ..storage.profile_store import StateKind

logger = logging.getLogger(__name__)

APP_NAME = "malatally"
FORMAT_VERSION = 1

SNAPSHOT_FIELDS = ("counts", "history", "streak")


@dataclass(frozen=True)
class SingleProfileBackup:
    snapshot: ProfileSnapshot
    profile_id: Optional[str] = None  # None: restore into the active profile


@dataclass(frozen=True)
class MultiProfileBackup:
    profiles: dict[str, ProfileSnapshot]


@dataclass(frozen=True)
class StorageBlobBackup:
    profiles: dict[str, ProfileSnapshot]


BackupDocument = Union[SingleProfileBackup, MultiProfileBackup, StorageBlobBackup]


def snapshot_document(snapshot: ProfileSnapshot) -> dict:
    """JSON-compatible form of a profile snapshot."""
    document = {
        "counts": snapshot.counts.to_document(),
        "history": [entry.to_document() for entry in snapshot.history],
        "streak": snapshot.streak.to_document(),
    }
    if snapshot.settings is not None:
        document["settings"] = snapshot.settings.to_document()
    return document


class BackupCodec:
    """Serializes, validates and merges profile snapshots."""

    def __init__(self, profiles: dict[str, Profile], clock: Clock):
        """
        Initialize codec.

        Args:
            profiles: Known profiles by id (blob keys are matched on their prefixes)
            clock: Dates the default counters of partial backups
        """
        self.profiles = profiles
        self.clock = clock

    def export_profile(self, profile_id: str, snapshot: ProfileSnapshot) -> bytes:
        """Export one profile as a single-profile document."""
        document = self._header()
        document["profile"] = profile_id
        document.update(snapshot_document(snapshot))
        return self._dump(document)

    def export_profiles(self, snapshots: dict[str, ProfileSnapshot]) -> bytes:
        """Export several profiles as a multi-profile document."""
        document = self._header()
        document["profiles"] = {
            profile_id: snapshot_document(snapshot)
            for profile_id, snapshot in snapshots.items()
        }
        return self._dump(document)

    def validate(self, data: Union[bytes, str]) -> BackupDocument:
        """
        Parse and structurally validate a backup payload.

        Args:
            data: Raw file or remote content

        Returns:
            The recognized backup document

        Raises:
            BackupInvalid: Unrecognized shape, or recognized but malformed
        """
        try:
            payload = json.loads(data)
        except (ValueError, TypeError) as e:
            raise BackupInvalid(BackupInvalidReason.UNRECOGNIZED_FORMAT, "not JSON") from e

        if not isinstance(payload, dict):
            raise BackupInvalid(
                BackupInvalidReason.UNRECOGNIZED_FORMAT,
                f"top level is {type(payload).__name__}, expected object",
            )

        if any(field in payload for field in SNAPSHOT_FIELDS):
            return self._parse_single(payload)

        if isinstance(payload.get("profiles"), dict):
            return self._parse_multi(payload["profiles"])

        blob = self._parse_blob(payload)
        if blob is not None:
            return blob

        raise BackupInvalid(
            BackupInvalidReason.UNRECOGNIZED_FORMAT, "no profile state found"
        )

    @staticmethod
    def merge(
        current: Optional[ProfileSnapshot], incoming: ProfileSnapshot
    ) -> ProfileSnapshot:
        """
        Combine a restored snapshot with the current one.

        Counts, history and streak are replaced wholesale by the incoming
        values. Settings are replaced only when the backup carries them.
        """
        settings = incoming.settings
        if settings is None and current is not None:
            settings = current.settings

        return ProfileSnapshot(
            counts=incoming.counts,
            history=normalize_history(incoming.history),
            streak=incoming.streak,
            settings=settings,
        )

    def targets(
        self, document: BackupDocument, active_profile_id: str
    ) -> dict[str, ProfileSnapshot]:
        """Profiles a document restores, keyed by profile id."""
        if isinstance(document, SingleProfileBackup):
            return {document.profile_id or active_profile_id: document.snapshot}
        return dict(document.profiles)

    def _header(self) -> dict:
        return {
            "app": APP_NAME,
            "version": FORMAT_VERSION,
            "exportedAt": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        }

    def _dump(self, document: dict) -> bytes:
        return json.dumps(document, indent=2, ensure_ascii=False).encode("utf-8")

    def _parse_single(self, payload: dict) -> SingleProfileBackup:
        profile_id = payload.get("profile")
        if profile_id is not None and not isinstance(profile_id, str):
            raise BackupInvalid(BackupInvalidReason.MALFORMED, "profile is not a string")
        if profile_id is not None and profile_id not in self.profiles:
            raise BackupInvalid(
                BackupInvalidReason.UNRECOGNIZED_FORMAT, f"unknown profile {profile_id!r}"
            )
        return SingleProfileBackup(
            snapshot=self._parse_snapshot(payload, "backup"),
            profile_id=profile_id,
        )

    def _parse_multi(self, entries: dict) -> MultiProfileBackup:
        profiles = {}
        for profile_id, state in entries.items():
            if profile_id not in self.profiles:
                logger.warning(f"Ignoring unknown profile {profile_id!r} in backup")
                continue
            if not isinstance(state, dict):
                raise BackupInvalid(
                    BackupInvalidReason.MALFORMED, f"profile {profile_id} is not an object"
                )
            profiles[profile_id] = self._parse_snapshot(state, profile_id)

        if not profiles:
            raise BackupInvalid(
                BackupInvalidReason.UNRECOGNIZED_FORMAT, "no known profiles in backup"
            )
        return MultiProfileBackup(profiles=profiles)

    def _parse_blob(self, payload: dict) -> Optional[StorageBlobBackup]:
        by_prefix = {profile.storage_prefix: profile for profile in self.profiles.values()}
        kinds = {kind.value for kind in StateKind}

        found: dict[str, dict[str, Any]] = {}
        for key, raw in payload.items():
            prefix, sep, kind = key.rpartition("_")
            if not sep or prefix not in by_prefix or kind not in kinds:
                continue
            profile_id = by_prefix[prefix].id
            found.setdefault(profile_id, {})[kind] = self._raw_value(key, raw)

        if not found:
            return None

        return StorageBlobBackup(
            profiles={
                profile_id: self._parse_snapshot(state, profile_id)
                for profile_id, state in found.items()
            }
        )

    def _raw_value(self, key: str, raw: Any) -> Any:
        # Stored values are JSON text; hand-edited files may inline them
        if not isinstance(raw, str):
            return raw
        try:
            return json.loads(raw)
        except ValueError as e:
            raise BackupInvalid(BackupInvalidReason.MALFORMED, f"{key} is not JSON") from e

    def _parse_snapshot(self, state: dict, where: str) -> ProfileSnapshot:
        try:
            counts = (
                DayCounts.model_validate(state["counts"])
                if state.get("counts") is not None
                else DayCounts.fresh(self.clock.today())
            )
            history = HISTORY_ADAPTER.validate_python(state.get("history") or [])
            streak = (
                StreakState.model_validate(state["streak"])
                if state.get("streak") is not None
                else StreakState()
            )
            settings = (
                GoalSettingsOverride.model_validate(state["settings"])
                if state.get("settings") is not None
                else None
            )
        except ValidationError as e:
            raise BackupInvalid(
                BackupInvalidReason.MALFORMED,
                f"{where}: {e.error_count()} invalid field(s)",
            ) from e

        return ProfileSnapshot(
            counts=counts,
            history=normalize_history(history),
            streak=streak,
            settings=settings,
        )
