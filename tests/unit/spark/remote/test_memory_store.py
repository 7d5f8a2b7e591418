"""Unit tests for modules.spark.remote.memory."""

import pytest

from modules.spark.core.exceptions import ChannelDisconnectedError, NotFoundError
from modules.spark.remote import InMemoryRemoteStore, RemoteStore, create_remote_store


class TestInMemoryRemoteStore:
    def test_satisfies_protocol(self):
        assert isinstance(InMemoryRemoteStore(), RemoteStore)

    def test_subscribe_delivers_initial_empty_snapshot(self):
        remote = InMemoryRemoteStore()
        snapshots = []

        remote.subscribe("user-1", snapshots.append)

        assert snapshots == [[]]

    @pytest.mark.asyncio
    async def test_create_broadcasts_newest_first(self):
        remote = InMemoryRemoteStore()
        snapshots = []
        remote.subscribe("user-1", snapshots.append)

        await remote.create("user-1", "first", False, ["general"])
        second_id = await remote.create("user-1", "second", True, ["task"])

        assert [r.content for r in snapshots[-1]] == ["second", "first"]
        assert snapshots[-1][0].remote_id == second_id
        assert snapshots[-1][0].is_task is True

    @pytest.mark.asyncio
    async def test_snapshots_are_scoped_to_owner(self):
        remote = InMemoryRemoteStore()
        mine, theirs = [], []
        remote.subscribe("user-1", mine.append)
        remote.subscribe("user-2", theirs.append)

        await remote.create("user-1", "mine", False, [])

        assert len(mine) == 2
        assert theirs == [[]]

    @pytest.mark.asyncio
    async def test_delete_broadcasts_and_removes(self):
        remote = InMemoryRemoteStore()
        snapshots = []
        remote.subscribe("user-1", snapshots.append)
        remote_id = await remote.create("user-1", "x", False, [])

        await remote.delete(remote_id)

        assert snapshots[-1] == []
        assert remote.get(remote_id) is None

    @pytest.mark.asyncio
    async def test_delete_unknown_raises_not_found(self):
        with pytest.raises(NotFoundError):
            await InMemoryRemoteStore().delete("missing")

    @pytest.mark.asyncio
    async def test_set_completed_updates_record(self):
        remote = InMemoryRemoteStore()
        remote_id = await remote.create("user-1", "todo", True, [])

        await remote.set_completed(remote_id, True)

        assert remote.get(remote_id).completed is True

    @pytest.mark.asyncio
    async def test_set_completed_unknown_raises_not_found(self):
        with pytest.raises(NotFoundError):
            await InMemoryRemoteStore().set_completed("missing", True)

    @pytest.mark.asyncio
    async def test_removed_listener_receives_nothing(self):
        remote = InMemoryRemoteStore()
        snapshots = []
        registration = remote.subscribe("user-1", snapshots.append)

        registration.remove()
        registration.remove()
        await remote.create("user-1", "x", False, [])

        assert snapshots == [[]]
        assert remote.listener_count == 0

    def test_simulate_disconnect_reports_error(self):
        remote = InMemoryRemoteStore()
        errors = []
        remote.subscribe("user-1", lambda records: None, errors.append)

        remote.simulate_disconnect("user-1")

        assert len(errors) == 1
        assert isinstance(errors[0], ChannelDisconnectedError)


class TestCreateRemoteStore:
    def test_memory_backend(self):
        assert isinstance(create_remote_store("memory"), InMemoryRemoteStore)

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unknown remote store backend"):
            create_remote_store("carrier-pigeon")

    def test_default_backend_from_config(self):
        assert isinstance(create_remote_store(), InMemoryRemoteStore)
