"""Error types raised by the tally engine."""

from enum import Enum


class MalaTallyError(Exception):
    """Base class for all engine errors."""


class StorageCorrupt(MalaTallyError):
    """A persisted value could not be parsed.

    Never escapes the storage layer: readers log it and fall back to defaults.
    """

    def __init__(self, key: str, detail: str):
        super().__init__(f"Corrupt value for {key}: {detail}")
        self.key = key
        self.detail = detail


class BackupInvalidReason(str, Enum):
    """Why a backup payload was rejected."""

    UNRECOGNIZED_FORMAT = "unrecognized_format"
    MALFORMED = "malformed"


class BackupInvalid(MalaTallyError):
    """A restore payload failed validation. No state was changed."""

    def __init__(self, reason: BackupInvalidReason, detail: str = ""):
        message = f"Invalid backup ({reason.value})"
        if detail:
            message += f": {detail}"
        super().__init__(message)
        self.reason = reason
        self.detail = detail


class RemoteUnavailable(MalaTallyError):
    """The remote backup store could not be reached or refused a command."""


class HistoryConflict(MalaTallyError):
    """A history edit would create a second entry for the same date."""
