"""Remote store protocol."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Protocol, runtime_checkable

from modules.spark.core.exceptions import ChannelDisconnectedError
from modules.spark.schemas.note import RemoteNoteRecord

SnapshotCallback = Callable[[Sequence[RemoteNoteRecord]], None]
ErrorCallback = Callable[[ChannelDisconnectedError], None]


@runtime_checkable
class ListenerRegistration(Protocol):
    """Handle returned by :meth:`RemoteStore.subscribe`."""

    def remove(self) -> None:
        """Stop delivering snapshots. Safe to call more than once."""
        ...


@runtime_checkable
class RemoteStore(Protocol):
    """Authoritative note storage with live per-owner snapshots.

    Implementations (in-memory, HTTP, …) must satisfy this protocol so the
    sync service can swap backends without changing call sites. The store
    owns durability and reconnects its own snapshot feed.
    """

    # ------------------------------------------------------------- mutations

    async def create(
        self,
        owner_id: str,
        content: str,
        is_task: bool,
        categories: list[str],
    ) -> str:
        """Persist a new record and return its remote id."""
        ...

    async def delete(self, remote_id: str) -> None:
        """Delete the record with *remote_id*."""
        ...

    async def set_completed(self, remote_id: str, completed: bool) -> None:
        """Update the completion flag of the record with *remote_id*."""
        ...

    # ------------------------------------------------------------------ feed

    def subscribe(
        self,
        owner_id: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None = None,
    ) -> ListenerRegistration:
        """Deliver an initial snapshot of *owner_id*'s records, newest first,
        then a full snapshot after every change.
        """
        ...


def sort_newest_first(records: Sequence[RemoteNoteRecord]) -> list[RemoteNoteRecord]:
    """Order records by ``created_at`` descending. Ties keep their input order."""
    return sorted(records, key=lambda r: r.created_at, reverse=True)
