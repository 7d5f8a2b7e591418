"""
Event Schemas.

Standardized event envelope and sync-specific event types.
All events emitted by the sync layer use the EventEnvelope base.

Naming convention for event_type: domain.entity.action (dot notation)

Usage:
    from modules.spark.events.schemas import SyncFailed

    event = SyncFailed(
        source="note-sync",
        correlation_id=item.local_id,
        payload={"code": "SYNC_CREATE_FAILED", "message": "Failed to save note"},
    )
"""

from uuid import uuid4

from pydantic import BaseModel, Field

from modules.spark.core.utils import utc_now


class EventEnvelope(BaseModel):
    """Base event envelope. All events inherit from this.

    Fields:
        event_id: Unique event identifier (auto-generated UUID)
        event_type: Domain event type in dot notation (e.g. notes.sync.failed)
        event_version: Schema version for forward compatibility
        timestamp: ISO 8601 UTC timestamp
        source: Component that published the event
        correlation_id: Local id of the note the event is about
        payload: Event-specific data
    """

    event_id: str = Field(default_factory=lambda: str(uuid4()))
    event_type: str
    event_version: int = 1
    timestamp: str = Field(default_factory=lambda: utc_now().isoformat())
    source: str
    correlation_id: str
    payload: dict


class SyncFailed(EventEnvelope):
    """Published when a remote operation failed and the store was rolled back.

    Payload keys: code, message, operation, local_id, remote_id.
    """

    event_type: str = "notes.sync.failed"

    @property
    def message(self) -> str:
        return self.payload.get("message", "")

    @property
    def code(self) -> str:
        return self.payload.get("code", "")
