"""Tests for the per-token snapshot store."""

from decimal import Decimal

from polyscout.apps.scanner.snapshots import Snapshot, SnapshotStore

_T0 = 1_700_000_000_000
_T1 = _T0 + 30_000


def _record(store: SnapshotStore, token_id: str, mid: str, observed_at: int = _T0) -> Snapshot:
    price = Decimal(mid)
    return store.record(
        token_id,
        mid=price,
        bid=price - Decimal("0.01"),
        ask=price + Decimal("0.01"),
        observed_at=observed_at,
    )


class TestSnapshotStore:
    """Tests for SnapshotStore."""

    def test_empty(self) -> None:
        """A new store knows no tokens."""
        store = SnapshotStore()
        assert len(store) == 0
        assert store.get("a") is None
        assert "a" not in store

    def test_record_and_get(self) -> None:
        """Recorded snapshots are returned by token id."""
        store = SnapshotStore()
        snap = _record(store, "a", "0.50")
        assert store.get("a") == snap
        assert "a" in store

    def test_last_write_wins(self) -> None:
        """A second observation replaces the first."""
        store = SnapshotStore()
        _record(store, "a", "0.50", _T0)
        _record(store, "a", "0.55", _T1)
        snap = store.get("a")
        assert snap is not None
        assert snap.mid == Decimal("0.55")
        assert snap.observed_at == _T1
        assert len(store) == 1

    def test_observed_at_tracks_latest(self) -> None:
        """The store timestamp only moves forward."""
        store = SnapshotStore()
        _record(store, "a", "0.5", _T1)
        _record(store, "b", "0.5", _T0)
        assert store.observed_at == _T1

    def test_pending_and_mark_clean(self) -> None:
        """Only tokens recorded since the last save are pending."""
        loaded = Snapshot(Decimal("0.4"), Decimal("0.39"), Decimal("0.41"), _T0)
        store = SnapshotStore([("old", loaded)], observed_at=_T0)
        assert store.pending() == []

        _record(store, "b", "0.6", _T1)
        _record(store, "a", "0.5", _T1)
        assert [token for token, _ in store.pending()] == ["a", "b"]

        store.mark_clean()
        assert store.pending() == []
        assert len(store) == 3
