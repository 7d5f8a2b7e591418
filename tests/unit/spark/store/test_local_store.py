"""Unit tests for modules.spark.store.local."""

import pytest

from modules.spark.core.exceptions import ConflictError, NotFoundError
from modules.spark.schemas.note import NoteItem
from modules.spark.store.local import LocalItemStore


def _item(content: str, remote_id: str | None = None, local_id: str | None = None) -> NoteItem:
    if local_id is None:
        return NoteItem(content=content, remote_id=remote_id)
    return NoteItem(content=content, remote_id=remote_id, local_id=local_id)


class TestReads:
    def test_empty_store(self):
        store = LocalItemStore()

        assert len(store) == 0
        assert store.items == ()
        assert store.find("x") is None
        assert store.index_of("x") is None

    def test_find_by_remote_id(self):
        confirmed = _item("a", remote_id="r1")
        store = LocalItemStore([confirmed, _item("b")])

        assert store.find_by_remote_id("r1") == confirmed
        assert store.find_by_remote_id("r2") is None

    def test_items_is_a_snapshot(self):
        store = LocalItemStore()
        before = store.items

        store.insert_at_head(_item("a"))

        assert before == ()
        assert len(store.items) == 1

    def test_constructor_rejects_duplicates(self):
        with pytest.raises(ConflictError):
            LocalItemStore([_item("a", remote_id="r1"), _item("b", remote_id="r1")])


class TestInsert:
    def test_insert_at_head_prepends(self):
        store = LocalItemStore()
        store.insert_at_head(_item("older"))
        store.insert_at_head(_item("newer"))

        assert [i.content for i in store] == ["newer", "older"]

    def test_insert_clamps_index(self):
        store = LocalItemStore([_item("a"), _item("b")])

        store.insert(99, _item("tail"))
        store.insert(-5, _item("head"))

        assert [i.content for i in store] == ["head", "a", "b", "tail"]

    def test_insert_rejects_duplicate_local_id(self):
        item = _item("a")
        store = LocalItemStore([item])

        with pytest.raises(ConflictError):
            store.insert_at_head(item)
        assert len(store) == 1

    def test_insert_rejects_duplicate_remote_id(self):
        store = LocalItemStore([_item("a", remote_id="r1")])

        with pytest.raises(ConflictError):
            store.insert_at_head(_item("b", remote_id="r1"))
        assert len(store) == 1


class TestRemoveAndReplace:
    def test_remove_returns_item(self):
        item = _item("a")
        store = LocalItemStore([item])

        assert store.remove(item.local_id) == item
        assert len(store) == 0

    def test_remove_missing_returns_none_without_notifying(self):
        store = LocalItemStore()
        calls = []
        store.subscribe(calls.append)

        assert store.remove("missing") is None
        assert calls == []

    def test_replace_keeps_position(self):
        first, second = _item("a"), _item("b")
        store = LocalItemStore([first, second])

        store.replace(second.local_id, second.confirmed("r2"))

        assert store.items[1].remote_id == "r2"
        assert store.items[0] == first

    def test_replace_missing_raises(self):
        store = LocalItemStore()

        with pytest.raises(NotFoundError):
            store.replace("missing", _item("a", local_id="missing"))

    def test_replace_must_keep_local_id(self):
        item = _item("a")
        store = LocalItemStore([item])

        with pytest.raises(ConflictError):
            store.replace(item.local_id, _item("b"))

    def test_replace_rejects_remote_id_held_by_another_entry(self):
        held, other = _item("a", remote_id="r1"), _item("b")
        store = LocalItemStore([held, other])

        with pytest.raises(ConflictError):
            store.replace(other.local_id, other.confirmed("r1"))


class TestReplaceAll:
    def test_installs_exact_order(self):
        store = LocalItemStore([_item("old")])
        new_items = [_item("x", remote_id="r1"), _item("y", remote_id="r2")]

        store.replace_all(new_items)

        assert list(store.items) == new_items

    def test_duplicate_remote_ids_leave_store_unchanged(self):
        original = _item("old")
        store = LocalItemStore([original])

        with pytest.raises(ConflictError):
            store.replace_all([_item("x", remote_id="r1"), _item("y", remote_id="r1")])

        assert store.items == (original,)

    def test_clear(self):
        store = LocalItemStore([_item("a"), _item("b")])

        store.clear()

        assert len(store) == 0


class TestObservers:
    def test_observer_notified_on_each_mutation(self):
        store = LocalItemStore()
        sizes = []
        store.subscribe(lambda s: sizes.append(len(s)))

        item = _item("a")
        store.insert_at_head(item)
        store.replace(item.local_id, item.with_completed(True))
        store.remove(item.local_id)

        assert sizes == [1, 1, 0]

    def test_unsubscribe_stops_notifications(self):
        store = LocalItemStore()
        calls = []
        unsubscribe = store.subscribe(calls.append)

        unsubscribe()
        store.insert_at_head(_item("a"))

        assert calls == []

    def test_failing_observer_does_not_block_others(self):
        store = LocalItemStore()
        calls = []

        def _broken(_store):
            raise RuntimeError("render failed")

        store.subscribe(_broken)
        store.subscribe(calls.append)

        store.insert_at_head(_item("a"))

        assert calls == [store]
