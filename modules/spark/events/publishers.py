"""
Event Publishers.

In-process publisher for sync events. The UI layer registers listeners and
receives a SyncFailed event for every remote failure that the reconciliation
policy rolled back.

Publishers check the sync_error_events_enabled feature flag before publishing.
When disabled, events are silently skipped (no error, no log noise).

Usage:
    from modules.spark.events.publishers import SyncEventPublisher

    publisher = SyncEventPublisher()
    remove = publisher.subscribe(lambda event: show_toast(event.message))
    publisher.sync_failed(error, operation="create", local_id=item.local_id)
"""

from collections.abc import Callable

from modules.spark.core.exceptions import ApplicationError
from modules.spark.core.logging import get_logger
from modules.spark.events.schemas import EventEnvelope, SyncFailed

logger = get_logger(__name__)

EventListener = Callable[[EventEnvelope], None]


class SyncEventPublisher:
    """Fans sync events out to registered listeners."""

    SOURCE = "note-sync"

    def __init__(self, enabled: bool | None = None) -> None:
        """
        Args:
            enabled: Override for the sync_error_events_enabled feature flag.
                If None, the flag is read from features.yaml on each publish.
        """
        self._enabled = enabled
        self._listeners: list[EventListener] = []

    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        """Register a listener. Returns a callable that removes it."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def sync_failed(
        self,
        error: ApplicationError,
        operation: str,
        local_id: str,
        remote_id: str | None = None,
    ) -> SyncFailed | None:
        """Publish a notes.sync.failed event for a rolled-back operation."""
        event = SyncFailed(
            source=self.SOURCE,
            correlation_id=local_id,
            payload={
                "code": error.code,
                "message": error.message,
                "operation": operation,
                "local_id": local_id,
                "remote_id": remote_id,
            },
        )
        return event if self._publish(event) else None

    def _is_enabled(self) -> bool:
        if self._enabled is not None:
            return self._enabled
        from modules.spark.core.config import get_app_config

        return get_app_config().features.sync_error_events_enabled

    def _publish(self, event: EventEnvelope) -> bool:
        """Deliver an event if the feature flag is enabled."""
        if not self._is_enabled():
            return False

        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as exc:
                logger.error(
                    "Event listener failed",
                    extra={"event_type": event.event_type, "event_id": event.event_id, "error": str(exc)},
                )

        logger.debug(
            "Event published",
            extra={"event_type": event.event_type, "event_id": event.event_id, "listeners": len(self._listeners)},
        )
        return True
