"""Shared fixtures: fixed clock, in-memory storage and an engine."""

import json
from datetime import date

import pytest

from malatally.engine.clock import Clock
from malatally.engine.profiles import BUILTIN_PROFILES
from malatally.engine.tally import TallyEngine
from malatally.storage.blob_store import MemoryBlobStore
from malatally.storage.profile_store import ProfileStore

TODAY = date(2024, 1, 3)
YESTERDAY = date(2024, 1, 2)


class FixedClock(Clock):
    """Clock pinned to a settable day."""

    def __init__(self, day: date):
        super().__init__("UTC")
        self.day = day

    def today(self) -> date:
        return self.day


def seed(blobs: MemoryBlobStore, key: str, value) -> None:
    """Store a JSON document the way the app persists it."""
    blobs.set(key, json.dumps(value))


def stored(blobs: MemoryBlobStore, key: str):
    return json.loads(blobs.get(key))


@pytest.fixture
def clock():
    return FixedClock(TODAY)


@pytest.fixture
def blobs():
    return MemoryBlobStore()


@pytest.fixture
def store(blobs):
    return ProfileStore(blobs)


@pytest.fixture
def engine(store, clock):
    return TallyEngine(store, clock)


@pytest.fixture
def om():
    return BUILTIN_PROFILES["OM"]


@pytest.fixture
def hk():
    return BUILTIN_PROFILES["HK"]


@pytest.fixture
def events(engine):
    """Events emitted by the engine, in order."""
    received = []
    engine.subscribe(received.append)
    return received
