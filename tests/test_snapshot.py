"""Tests for snapshots, reload tokens and the snapshot store."""

from __future__ import annotations

import pytest

from couchdb_config.snapshot import ReloadToken, Snapshot, SnapshotStore, config_key_sort_key


@pytest.fixture
def snapshot() -> Snapshot:
    return Snapshot({"db:doc1:a": 1, "db:doc1:b": 2, "db:doc2:c": 3})


class TestChildKeys:
    """Tests for child-key enumeration."""

    def test_top_level(self, snapshot) -> None:
        assert snapshot.get_child_keys("") == ["db"]
        assert snapshot.get_child_keys(None) == ["db"]
        assert snapshot.get_child_keys("   ") == ["db"]

    def test_immediate_children_only(self, snapshot) -> None:
        assert snapshot.get_child_keys("db") == ["doc1", "doc2"]
        assert snapshot.get_child_keys("db:doc1") == ["a", "b"]

    def test_nested_keys_yield_next_segment(self) -> None:
        snap = Snapshot({"a:b:c": 1, "a:d": 2})
        assert snap.get_child_keys("a") == ["b", "d"]

    def test_unknown_prefix(self, snapshot) -> None:
        assert snapshot.get_child_keys("nope") == []

    def test_prefix_must_end_at_segment_boundary(self) -> None:
        snap = Snapshot({"db:doc1:a": 1, "db:doc10:b": 2})
        assert snap.get_child_keys("db:doc1") == ["a"]

    def test_merges_earlier_keys(self, snapshot) -> None:
        result = snapshot.get_child_keys("db:doc1", ["z", "a", "other"])
        assert result == ["a", "b", "other", "z"]

    def test_numeric_segments_sort_numerically(self) -> None:
        snap = Snapshot({"list:10": 1, "list:2": 2, "list:Name": 3, "list:alpha": 4})
        assert snap.get_child_keys("list") == ["2", "10", "alpha", "Name"]

    def test_non_ascii_digit_segments_sort_as_text(self) -> None:
        snap = Snapshot({"settings:app:\u00b2": 1, "settings:app:x": 2, "settings:app:3": 3})
        assert snap.get_child_keys("settings:app") == ["3", "x", "\u00b2"]

    def test_sort_key(self) -> None:
        assert config_key_sort_key("a:2") < config_key_sort_key("a:10")
        assert config_key_sort_key("5") < config_key_sort_key("a")


class TestSnapshot:
    """Tests for point lookups and immutability."""

    def test_try_get_unknown_key(self, snapshot) -> None:
        assert snapshot.try_get("missing") == (False, None)

    def test_try_get_non_scalar(self) -> None:
        snap = Snapshot({"db:doc:list": [1, 2]})
        assert snap.try_get("db:doc:list") == (False, None)
        assert snap.get_child_keys("db:doc") == ["list"]

    def test_copy_of_input(self) -> None:
        data = {"a": 1}
        snap = Snapshot(data)
        data["b"] = 2
        assert "b" not in snap

    def test_read_only(self, snapshot) -> None:
        with pytest.raises(TypeError):
            snapshot["db:doc1:a"] = 5  # type: ignore[index]

    def test_mapping_protocol(self, snapshot) -> None:
        assert len(snapshot) == 3
        assert snapshot["db:doc2:c"] == 3
        assert list(snapshot) == ["db:doc1:a", "db:doc1:b", "db:doc2:c"]


class TestReloadToken:
    """Tests for one-shot reload tokens."""

    def test_fires_callbacks_once(self) -> None:
        token = ReloadToken()
        calls = []
        token.register_change_callback(calls.append, "first")
        token.register_change_callback(calls.append, "second")

        token.on_reload()
        token.on_reload()

        assert calls == ["first", "second"]
        assert token.has_changed

    def test_dispose_unregisters(self) -> None:
        token = ReloadToken()
        calls = []
        registration = token.register_change_callback(calls.append, "x")
        registration.dispose()
        registration.dispose()

        token.on_reload()

        assert calls == []

    def test_late_registration_runs_immediately(self) -> None:
        token = ReloadToken()
        token.on_reload()
        calls = []
        token.register_change_callback(calls.append, "late")
        assert calls == ["late"]

    def test_failing_callback_does_not_stop_others(self) -> None:
        token = ReloadToken()
        calls = []

        def boom(_state):
            raise RuntimeError("boom")

        token.register_change_callback(boom)
        token.register_change_callback(calls.append, "ok")
        token.on_reload()

        assert calls == ["ok"]


class TestSnapshotStore:
    """Tests for atomic snapshot replacement."""

    def test_starts_empty(self) -> None:
        store = SnapshotStore()
        assert len(store.current) == 0
        assert store.current.version == 0
        assert not store.reload_token.has_changed

    def test_swap_replaces_snapshot_and_token(self) -> None:
        store = SnapshotStore()
        old_snapshot = store.current
        old_token = store.reload_token

        new_snapshot = store.swap({"db:a:x": 1})

        assert store.current is new_snapshot
        assert new_snapshot.version == 1
        assert old_token.has_changed
        assert store.reload_token is not old_token
        assert not store.reload_token.has_changed
        assert len(old_snapshot) == 0

    def test_each_swap_fires_exactly_one_token(self) -> None:
        store = SnapshotStore()
        fired = []
        store.reload_token.register_change_callback(fired.append, "v0")

        store.swap({"a": 1})
        store.reload_token.register_change_callback(fired.append, "v1")
        store.swap({"a": 2})

        assert fired == ["v0", "v1"]
        assert store.current.version == 2

    def test_callback_sees_new_snapshot(self) -> None:
        store = SnapshotStore()
        seen = []
        store.reload_token.register_change_callback(
            lambda _: seen.append(store.current.try_get("a"))
        )
        store.swap({"a": "new"})
        assert seen == [(True, "new")]

    def test_delimiter_flows_to_snapshot(self) -> None:
        store = SnapshotStore(delimiter=".")
        store.swap({"db.doc.a": 1})
        assert store.current.get_child_keys("db") == ["doc"]
