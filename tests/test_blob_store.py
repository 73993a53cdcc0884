"""Tests for the SQLite blob store."""

from malatally.storage.blob_store import SqliteBlobStore
from malatally.storage.profile_store import ProfileStore, StateKind


def test_set_get_remove(tmp_path):
    blobs = SqliteBlobStore(str(tmp_path / "nested" / "tally.db"))

    assert blobs.get("om_counts") is None
    blobs.set("om_counts", '{"beadCount": 1}')
    blobs.set("om_counts", '{"beadCount": 2}')
    blobs.set("hk_counts", "{}")

    assert blobs.get("om_counts") == '{"beadCount": 2}'
    assert blobs.keys() == ["hk_counts", "om_counts"]

    blobs.remove("om_counts")
    assert blobs.get("om_counts") is None


def test_state_survives_reopen(tmp_path, engine, clock):
    path = str(tmp_path / "tally.db")
    engine.store = ProfileStore(SqliteBlobStore(path))
    session = engine.activate("OM")
    for _ in range(4):
        engine.increment(session)

    reopened = ProfileStore(SqliteBlobStore(path))
    counts = reopened.read(session.profile, StateKind.COUNTS)

    assert counts.bead_count == 4
    assert reopened.saved_active_profile_id() == "OM"
