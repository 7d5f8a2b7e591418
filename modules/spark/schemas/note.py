"""
Note Schemas.

Pydantic models for the two note representations the sync layer handles:

    NoteItem          - local, UI-facing entry held by LocalItemStore
    RemoteNoteRecord  - authoritative record owned by the remote store

NoteItem is immutable. State changes (remote id assignment, completion
toggles) produce a new instance that replaces the old one in the store.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from modules.spark.core.exceptions import ConflictError
from modules.spark.core.utils import new_id, utc_now

UNTITLED = "Untitled Note"
TITLE_LENGTH = 30


class NoteState(str, Enum):
    """Lifecycle of a note as seen by the reconciliation policy."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    DELETED = "deleted"
    SUPERSEDED = "superseded"


class RemoteNoteRecord(BaseModel):
    """Note record as stored remotely. Wire form uses camelCase keys."""

    remote_id: str = Field(alias="id", description="Identifier assigned by the remote store")
    owner_id: str = Field(description="Authenticated user that owns the note")
    content: str
    is_task: bool = False
    categories: list[str] = Field(default_factory=list)
    completed: bool = False
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class NoteItem(BaseModel):
    """Note entry shown to the user."""

    local_id: str = Field(default_factory=new_id)
    remote_id: str | None = None
    content: str
    is_task: bool = False
    completed: bool = False
    categories: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)

    model_config = ConfigDict(frozen=True)

    @property
    def state(self) -> NoteState:
        return NoteState.PENDING if self.remote_id is None else NoteState.CONFIRMED

    @property
    def display_title(self) -> str:
        return self.content[:TITLE_LENGTH] if self.content else UNTITLED

    def confirmed(self, remote_id: str) -> "NoteItem":
        """
        Return a copy carrying the remote id.

        Raises:
            ConflictError: If a different remote id was already assigned
        """
        if self.remote_id is not None and self.remote_id != remote_id:
            raise ConflictError(
                f"Note {self.local_id} already confirmed as {self.remote_id}"
            )
        return self.model_copy(update={"remote_id": remote_id})

    def with_completed(self, completed: bool) -> "NoteItem":
        return self.model_copy(update={"completed": completed})

    @classmethod
    def from_record(cls, record: RemoteNoteRecord, local_id: str | None = None) -> "NoteItem":
        """Translate a remote record, reusing ``local_id`` when one is known."""
        return cls(
            local_id=local_id or new_id(),
            remote_id=record.remote_id,
            content=record.content,
            is_task=record.is_task,
            completed=record.completed,
            categories=list(record.categories),
            created_at=record.created_at,
        )
