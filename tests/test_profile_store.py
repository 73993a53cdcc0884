"""Tests for namespaced persistence and the load/write gate."""

from datetime import date

from conftest import TODAY, seed, stored

from malatally.engine.models import DayCounts, HistoryEntry, StreakState
from malatally.storage.profile_store import LoadPhase, StateKind, storage_key


def test_keys_are_namespaced_by_prefix(om, hk):
    assert storage_key(om, StateKind.COUNTS) == "om_counts"
    assert storage_key(hk, StateKind.HISTORY) == "hk_history"


def test_read_absent_returns_none(store, om):
    assert store.read(om, StateKind.COUNTS) is None


def test_read_parses_storage_document(store, blobs, om):
    seed(blobs, "om_counts", {
        "beadCount": 12,
        "roundCount": 3,
        "lastVisitDate": "2024-01-03",
        "targetReachedToday": True,
    })
    seed(blobs, "om_history", [{"date": "2024-01-02", "rounds": 4}])

    assert store.read(om, StateKind.COUNTS) == DayCounts(
        bead_count=12, round_count=3, last_visit_date=TODAY, target_reached_today=True
    )
    assert store.read(om, StateKind.HISTORY) == [
        HistoryEntry(day=date(2024, 1, 2), rounds=4)
    ]


def test_corrupt_values_read_as_absent(store, blobs, om, caplog):
    blobs.set("om_counts", "{not json")
    seed(blobs, "om_streak", {"count": 3, "lastDate": None})
    seed(blobs, "om_history", {"date": "2024-01-02"})

    assert store.read(om, StateKind.COUNTS) is None
    assert store.read(om, StateKind.STREAK) is None
    assert store.read(om, StateKind.HISTORY) is None
    assert "Corrupt value for om_counts" in caplog.text


def test_writes_suppressed_until_profile_loaded(store, blobs, om):
    counts = DayCounts.fresh(TODAY)

    assert store.phase(om.id) == LoadPhase.LOADING
    assert store.write(om, StateKind.COUNTS, counts) is False
    assert blobs.get("om_counts") is None

    with store.load_scope(om):
        assert store.write(om, StateKind.COUNTS, counts) is False

    assert store.phase(om.id) == LoadPhase.READY
    assert store.write(om, StateKind.COUNTS, counts) is True
    assert stored(blobs, "om_counts")["lastVisitDate"] == "2024-01-03"


def test_loader_may_write_during_load(store, blobs, om):
    with store.load_scope(om) as loader:
        assert loader.write(StateKind.STREAK, StreakState()) is True

    assert stored(blobs, "om_streak") == {"count": 0, "lastDate": None}


def test_switch_blocks_writes_for_previous_profile(store, blobs, om, hk):
    with store.load_scope(om):
        pass
    with store.load_scope(hk):
        pass

    assert store.write(om, StateKind.COUNTS, DayCounts.fresh(TODAY)) is False
    assert blobs.get("om_counts") is None
    assert store.active_profile_id == "HK"
    assert store.saved_active_profile_id() == "HK"


def test_stale_loader_cannot_write_after_switch(store, blobs, om, hk):
    with store.load_scope(om) as om_loader:
        with store.load_scope(hk):
            pass
        assert om_loader.write(StateKind.COUNTS, DayCounts.fresh(TODAY)) is False

    assert blobs.get("om_counts") is None
    assert store.phase(om.id) == LoadPhase.LOADING
    assert store.is_writable(hk)


def test_loader_closed_after_scope(store, om):
    with store.load_scope(om) as loader:
        pass
    assert loader.write(StateKind.COUNTS, DayCounts.fresh(TODAY)) is False


def test_remove_respects_gate(store, blobs, om):
    seed(blobs, "om_settings", {"beadsPerRound": 27})
    assert store.remove(om, StateKind.SETTINGS) is False

    with store.load_scope(om):
        pass
    assert store.remove(om, StateKind.SETTINGS) is True
    assert blobs.get("om_settings") is None
