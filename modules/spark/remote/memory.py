"""In-process remote store.

Keeps records in a dict and pushes snapshots to listeners synchronously after
every mutation, the way a document database's local cache fires listeners
before the server acknowledges a write. Used by the CLI demo and tests.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from modules.spark.core.exceptions import ChannelDisconnectedError, NotFoundError
from modules.spark.core.logging import get_logger
from modules.spark.core.utils import new_id, utc_now
from modules.spark.remote.base import ErrorCallback, SnapshotCallback, sort_newest_first
from modules.spark.schemas.note import RemoteNoteRecord

logger = get_logger(__name__)


@dataclass(eq=False)
class _Listener:
    owner_id: str
    on_snapshot: SnapshotCallback
    on_error: ErrorCallback | None = None
    active: bool = True


@dataclass
class MemoryRegistration:
    """Registration handle for :class:`InMemoryRemoteStore` listeners."""

    store: InMemoryRemoteStore = field(repr=False)
    listener: _Listener = field(repr=False)

    def remove(self) -> None:
        self.store._detach(self.listener)


class InMemoryRemoteStore:
    """Dict-backed RemoteStore with live snapshots."""

    def __init__(self, latency: float = 0.0) -> None:
        """
        Args:
            latency: Seconds each mutation waits before applying, to make the
                optimistic window observable in demos.
        """
        self.latency = latency
        self._records: dict[str, RemoteNoteRecord] = {}
        self._listeners: list[_Listener] = []

    # ------------------------------------------------------------- mutations

    async def create(
        self,
        owner_id: str,
        content: str,
        is_task: bool,
        categories: list[str],
    ) -> str:
        await self._delay()
        now = utc_now()
        record = RemoteNoteRecord(
            remote_id=new_id(),
            owner_id=owner_id,
            content=content,
            is_task=is_task,
            categories=list(categories),
            created_at=now,
            updated_at=now,
        )
        self._records[record.remote_id] = record
        logger.debug("Record created", extra={"remote_id": record.remote_id, "owner_id": owner_id})
        self._broadcast(owner_id)
        return record.remote_id

    async def delete(self, remote_id: str) -> None:
        await self._delay()
        record = self._records.pop(remote_id, None)
        if record is None:
            raise NotFoundError(f"Note {remote_id} not found")
        logger.debug("Record deleted", extra={"remote_id": remote_id})
        self._broadcast(record.owner_id)

    async def set_completed(self, remote_id: str, completed: bool) -> None:
        await self._delay()
        record = self._records.get(remote_id)
        if record is None:
            raise NotFoundError(f"Note {remote_id} not found")
        self._records[remote_id] = record.model_copy(
            update={"completed": completed, "updated_at": utc_now()},
        )
        self._broadcast(record.owner_id)

    # ------------------------------------------------------------------ feed

    def subscribe(
        self,
        owner_id: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None = None,
    ) -> MemoryRegistration:
        listener = _Listener(owner_id, on_snapshot, on_error)
        self._listeners.append(listener)
        on_snapshot(self.snapshot(owner_id))
        return MemoryRegistration(self, listener)

    def snapshot(self, owner_id: str) -> list[RemoteNoteRecord]:
        """Current records of *owner_id*, newest first."""
        latest_first = reversed(list(self._records.values()))
        return sort_newest_first([r for r in latest_first if r.owner_id == owner_id])

    def simulate_disconnect(self, owner_id: str) -> None:
        """Report a dropped connection to every listener of *owner_id*."""
        for listener in list(self._listeners):
            if listener.active and listener.owner_id == owner_id and listener.on_error is not None:
                listener.on_error(ChannelDisconnectedError())

    def get(self, remote_id: str) -> RemoteNoteRecord | None:
        return self._records.get(remote_id)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def _detach(self, listener: _Listener) -> None:
        listener.active = False
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _broadcast(self, owner_id: str) -> None:
        records = self.snapshot(owner_id)
        for listener in list(self._listeners):
            if listener.active and listener.owner_id == owner_id:
                listener.on_snapshot(records)

    async def _delay(self) -> None:
        if self.latency > 0:
            await asyncio.sleep(self.latency)
