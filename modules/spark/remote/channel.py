"""
Remote Sync Channel.

Owner-scoped live subscription to the remote store's note feed. Every
snapshot is delivered through the SerialExecutor, so the snapshot callback
runs in the same owner context as create/delete requests.

After unsubscribe no callback fires, including snapshots that were already
queued for the owner loop when unsubscribe was called.

Disconnects are logged and recorded on the handle. The channel never
synthesizes a snapshot and never retries; reconnecting is the remote
store's job.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from modules.spark.core.concurrency import SerialExecutor
from modules.spark.core.exceptions import ChannelDisconnectedError
from modules.spark.core.logging import get_logger, log_with_source
from modules.spark.remote.base import ListenerRegistration, RemoteStore
from modules.spark.schemas.note import RemoteNoteRecord

logger = get_logger(__name__)

SnapshotHandler = Callable[[list[RemoteNoteRecord]], None]


@dataclass(eq=False)
class SubscriptionHandle:
    """Handle for one live subscription."""

    owner_id: str
    active: bool = True
    connected: bool = True
    snapshots_delivered: int = 0
    registration: ListenerRegistration | None = field(default=None, repr=False)


class RemoteSyncChannel:
    """Delivers full ordered snapshots of an owner's notes."""

    def __init__(self, remote: RemoteStore, executor: SerialExecutor) -> None:
        self._remote = remote
        self._executor = executor
        self._handles: list[SubscriptionHandle] = []

    @property
    def active_handles(self) -> list[SubscriptionHandle]:
        return [handle for handle in self._handles if handle.active]

    def subscribe(self, owner_id: str, on_snapshot: SnapshotHandler) -> SubscriptionHandle:
        """Open a subscription for ``owner_id``.

        The remote store delivers an initial snapshot (possibly empty) and a
        new full snapshot on every change.
        """
        self._executor.bind()
        if any(handle.owner_id == owner_id for handle in self.active_handles):
            logger.info("Second subscription opened for owner", extra={"owner_id": owner_id})

        handle = SubscriptionHandle(owner_id=owner_id)
        self._handles.append(handle)

        def _on_snapshot(records: Sequence[RemoteNoteRecord]) -> None:
            if handle.active:
                self._executor.call(self._deliver, handle, on_snapshot, list(records))

        def _on_error(error: ChannelDisconnectedError) -> None:
            if handle.active:
                self._executor.call(self._disconnected, handle, error)

        handle.registration = self._remote.subscribe(owner_id, _on_snapshot, _on_error)
        log_with_source(logger, "sync", "info", "Subscribed to notes", owner_id=owner_id)
        return handle

    def unsubscribe(self, handle: SubscriptionHandle) -> None:
        """Stop delivery for ``handle``. Safe to call more than once."""
        if not handle.active:
            return
        handle.active = False
        if handle.registration is not None:
            handle.registration.remove()
        if handle in self._handles:
            self._handles.remove(handle)
        log_with_source(logger, "sync", "info", "Unsubscribed from notes", owner_id=handle.owner_id)

    def unsubscribe_all(self) -> None:
        for handle in list(self._handles):
            self.unsubscribe(handle)

    def _deliver(
        self,
        handle: SubscriptionHandle,
        on_snapshot: SnapshotHandler,
        records: list[RemoteNoteRecord],
    ) -> None:
        if not handle.active:
            return
        if not handle.connected:
            log_with_source(logger, "sync", "info", "Snapshot channel reconnected", owner_id=handle.owner_id)
        handle.connected = True
        handle.snapshots_delivered += 1
        on_snapshot(records)

    def _disconnected(self, handle: SubscriptionHandle, error: ChannelDisconnectedError) -> None:
        if not handle.active:
            return
        handle.connected = False
        log_with_source(
            logger, "sync", "warning", "Snapshot channel disconnected",
            owner_id=handle.owner_id, error=error.message, code=error.code,
        )
