"""
Note Sync Service.

Reconciles the local item store with the remote store's live snapshot feed.

Local requests (create, delete, toggle) are applied to the store at once and
confirmed remotely in the background. Confirmations stamp the remote id;
failures roll the store back and publish a SyncFailed event. Snapshots from
the channel replace the store wholesale, superseding any optimistic entry
they do not contain.

Every store mutation happens in the owner context of the SerialExecutor.
Remote operations run as background tasks whose completion handlers
re-enter that context and become no-ops once the session they belong to
has ended (sign-out or owner switch).
"""

from modules.spark.core.concurrency import SerialExecutor
from modules.spark.core.config_schema import FeaturesSchema, SyncSchema
from modules.spark.core.exceptions import (
    ApplicationError,
    NotAuthenticatedError,
    NotFoundError,
    RemoteCreateFailedError,
    RemoteDeleteFailedError,
    RemoteUpdateFailedError,
)
from modules.spark.core.resilience import call_with_resilience, create_circuit_breaker
from modules.spark.events.publishers import SyncEventPublisher
from modules.spark.remote.base import RemoteStore
from modules.spark.remote.channel import RemoteSyncChannel, SubscriptionHandle
from modules.spark.schemas.note import NoteItem, NoteState, RemoteNoteRecord
from modules.spark.services.base import BaseService
from modules.spark.services.classifier import categorize, detect_task
from modules.spark.services.identity import IdentityProvider
from modules.spark.store.local import LocalItemStore


class NoteSyncService(BaseService):
    """
    Optimistic reconciliation between the local store and the remote store.

    Collaborators are injected; nothing here is a process-wide singleton.
    """

    def __init__(
        self,
        remote: RemoteStore,
        identity: IdentityProvider,
        *,
        store: LocalItemStore | None = None,
        publisher: SyncEventPublisher | None = None,
        executor: SerialExecutor | None = None,
        settings: SyncSchema | None = None,
        features: FeaturesSchema | None = None,
    ) -> None:
        super().__init__()
        if settings is None or features is None:
            from modules.spark.core.config import get_app_config

            config = get_app_config()
            settings = settings or config.sync
            features = features or config.features

        self.remote = remote
        self.identity = identity
        self.store = store if store is not None else LocalItemStore()
        self.publisher = (
            publisher if publisher is not None
            else SyncEventPublisher(enabled=features.sync_error_events_enabled)
        )
        self._executor = executor if executor is not None else SerialExecutor()
        self.channel = RemoteSyncChannel(remote, self._executor)
        self._settings = settings
        self._features = features
        self._breaker = create_circuit_breaker(
            "remote-store",
            fail_max=settings.resilience.breaker_fail_max,
            timeout_duration=settings.resilience.breaker_timeout_seconds,
            exclude=[NotFoundError],
        )

        self._pending_creates: dict[str, NoteItem] = {}
        self._deleted_while_pending: set[str] = set()
        self._subscription: SubscriptionHandle | None = None
        self._owner_id: str | None = None
        self._session = 0
        self._remove_auth_listener = None
        self.last_error: str | None = None

    # ------------------------------------------------------------- lifecycle

    @property
    def owner_id(self) -> str | None:
        """Owner of the open session, if any."""
        return self._owner_id

    @property
    def is_subscribed(self) -> bool:
        return self._subscription is not None and self._subscription.active

    @property
    def pending_creates(self) -> int:
        return len(self._pending_creates)

    def start(self) -> None:
        """Follow the identity provider; subscribe while someone is signed in."""
        self._executor.ensure_owner()
        if self._remove_auth_listener is None:
            self._remove_auth_listener = self.identity.add_listener(self._on_auth_changed)
        self._apply_auth_change(self.identity.current_owner_id)

    async def close(self) -> None:
        """Stop following identity, close the feed and wait for in-flight work."""
        if self._remove_auth_listener is not None:
            self._remove_auth_listener()
            self._remove_auth_listener = None
        self.channel.unsubscribe_all()
        self._subscription = None
        await self._executor.drain()

    async def drain(self) -> None:
        """Wait for every in-flight remote operation to complete."""
        await self._executor.drain()

    def clear_error(self) -> None:
        self.last_error = None

    def _on_auth_changed(self, owner_id: str | None) -> None:
        self._executor.call(self._apply_auth_change, owner_id)

    def _apply_auth_change(self, owner_id: str | None) -> None:
        if owner_id == self._owner_id:
            return
        if self._owner_id is not None:
            self._close_session()
        if owner_id is not None:
            self._open_session(owner_id)

    def _open_session(self, owner_id: str) -> None:
        self._owner_id = owner_id
        self._log_operation("Opening sync session", owner_id=owner_id)
        self._subscription = self.channel.subscribe(owner_id, self.on_snapshot)

    def _close_session(self) -> None:
        self._log_operation("Closing sync session", owner_id=self._owner_id, in_flight=len(self._pending_creates))
        if self._subscription is not None:
            self.channel.unsubscribe(self._subscription)
            self._subscription = None
        self._owner_id = None
        self._session += 1
        self._pending_creates.clear()
        self._deleted_while_pending.clear()
        self.store.clear()

    def _require_owner(self) -> str:
        owner_id = self.identity.current_owner_id
        if owner_id is None:
            raise NotAuthenticatedError()
        return owner_id

    # ---------------------------------------------------------------- create

    def create_item(self, content: str, is_task: bool | None = None) -> NoteItem:
        """
        Capture a note. The item is at the head of the store on return.

        Args:
            content: Note text
            is_task: Task flag. If None, the keyword classifier decides.

        Returns:
            The optimistic item (no remote id yet)

        Raises:
            NotAuthenticatedError: If nobody is signed in
            ValidationError: If content is empty or too long
        """
        self._executor.ensure_owner()
        owner_id = self._require_owner()
        self._validate_required({"content": content}, ["content"])
        self._validate_string_length(
            content, "content", max_length=self._settings.notes.max_content_length,
        )

        if is_task is None:
            is_task = self._features.auto_classify_tasks and detect_task(content)
        categories = (
            categorize(content, self._settings.notes.default_category)
            if self._features.auto_categorize
            else []
        )

        item = NoteItem(content=content, is_task=is_task, categories=categories)
        self.store.insert_at_head(item)
        self._pending_creates[item.local_id] = item
        self._log_operation("Creating note", local_id=item.local_id, is_task=is_task)

        self._executor.spawn(
            self._create_remote(item, owner_id, self._session),
            name=f"create-note-{item.local_id}",
        )
        return item

    async def _create_remote(self, item: NoteItem, owner_id: str, session: int) -> None:
        try:
            remote_id = await self._execute_remote_operation(
                "create_note",
                call_with_resilience(
                    self._breaker,
                    self._settings.resilience,
                    self.remote.create,
                    owner_id,
                    item.content,
                    item.is_task,
                    list(item.categories),
                ),
                RemoteCreateFailedError,
            )
        except RemoteCreateFailedError as error:
            self._executor.call(self._create_failed, item, error, session)
        else:
            self._executor.call(self._create_succeeded, item, remote_id, session)

    def _create_succeeded(self, item: NoteItem, remote_id: str, session: int) -> None:
        self._pending_creates.pop(item.local_id, None)
        if session != self._session:
            self._log_debug("Ignoring create completion from a closed session", local_id=item.local_id)
            return

        if item.local_id in self._deleted_while_pending:
            self._deleted_while_pending.discard(item.local_id)
            self._log_operation(
                "Note deleted before its create completed, removing remote copy",
                local_id=item.local_id,
                remote_id=remote_id,
            )
            self._executor.spawn(
                self._delete_orphan(remote_id, session),
                name=f"delete-orphan-{remote_id}",
            )
            return

        current = self.store.find(item.local_id)
        if current is not None:
            confirmed = current.confirmed(remote_id)
            self.store.replace(item.local_id, confirmed)
            if confirmed.completed:
                # toggled while pending; the create carried completed=False
                self._executor.spawn(
                    self._update_completed_remote(confirmed, session),
                    name=f"complete-note-{remote_id}",
                )
        elif self.store.find_by_remote_id(remote_id) is None:
            # superseded by a snapshot that predates the create
            self.store.insert_at_head(item.confirmed(remote_id))
        self._log_debug(
            "Note state changed",
            local_id=item.local_id,
            remote_id=remote_id,
            state=NoteState.CONFIRMED.value,
        )

    def _create_failed(self, item: NoteItem, error: ApplicationError, session: int) -> None:
        self._pending_creates.pop(item.local_id, None)
        if session != self._session:
            return
        if item.local_id in self._deleted_while_pending:
            self._deleted_while_pending.discard(item.local_id)
            self._log_debug("Create failed for a note already deleted locally", local_id=item.local_id)
            return

        if self.store.remove(item.local_id) is None:
            self._log_debug(
                "Note state changed",
                local_id=item.local_id,
                state=NoteState.SUPERSEDED.value,
            )
        self._report(error, "create", item.local_id)

    # ---------------------------------------------------------------- delete

    def delete_item(self, local_id: str) -> None:
        """
        Remove a note. The item is gone from the store on return.

        Raises:
            NotAuthenticatedError: If nobody is signed in
        """
        self._executor.ensure_owner()
        self._require_owner()

        index = self.store.index_of(local_id)
        if index is None:
            return
        item = self.store.remove(local_id)
        self._log_operation(
            "Deleting note",
            local_id=local_id,
            remote_id=item.remote_id,
            state=NoteState.DELETED.value,
        )

        if item.remote_id is None:
            if local_id in self._pending_creates:
                self._deleted_while_pending.add(local_id)
            return

        self._executor.spawn(
            self._delete_remote(item, index, self._session),
            name=f"delete-note-{item.remote_id}",
        )

    async def _delete_remote(self, item: NoteItem, index: int, session: int) -> None:
        try:
            await self._execute_remote_operation(
                "delete_note",
                call_with_resilience(
                    self._breaker, self._settings.resilience, self.remote.delete, item.remote_id,
                ),
                RemoteDeleteFailedError,
            )
        except RemoteDeleteFailedError as error:
            if isinstance(error.__cause__, NotFoundError):
                self._log_debug("Note was already gone remotely", remote_id=item.remote_id)
                return
            self._executor.call(self._delete_failed, item, index, error, session)

    def _delete_failed(self, item: NoteItem, index: int, error: ApplicationError, session: int) -> None:
        if session != self._session:
            return
        if self.store.find(item.local_id) is None and self.store.find_by_remote_id(item.remote_id) is None:
            self.store.insert(index, item)
        self._report(error, "delete", item.local_id, item.remote_id)

    async def _delete_orphan(self, remote_id: str, session: int) -> None:
        try:
            await self._execute_remote_operation(
                "delete_orphan",
                call_with_resilience(
                    self._breaker, self._settings.resilience, self.remote.delete, remote_id,
                ),
                RemoteDeleteFailedError,
            )
        except RemoteDeleteFailedError as error:
            if session == self._session and not isinstance(error.__cause__, NotFoundError):
                self._logger.warning(
                    "Orphaned remote note could not be deleted",
                    extra={"remote_id": remote_id, "error": str(error.__cause__)},
                )

    # ------------------------------------------------------------ completion

    def toggle_complete(self, local_id: str) -> NoteItem | None:
        """
        Flip the completed flag. Confirmed notes are updated remotely too.

        Returns:
            The updated item, or None if ``local_id`` is not in the store

        Raises:
            NotAuthenticatedError: If nobody is signed in
        """
        self._executor.ensure_owner()
        self._require_owner()

        item = self.store.find(local_id)
        if item is None:
            return None
        updated = item.with_completed(not item.completed)
        self.store.replace(local_id, updated)

        if updated.remote_id is not None:
            self._executor.spawn(
                self._update_completed_remote(updated, self._session),
                name=f"complete-note-{updated.remote_id}",
            )
        return updated

    async def _update_completed_remote(self, item: NoteItem, session: int) -> None:
        try:
            await self._execute_remote_operation(
                "set_completed",
                call_with_resilience(
                    self._breaker,
                    self._settings.resilience,
                    self.remote.set_completed,
                    item.remote_id,
                    item.completed,
                ),
                RemoteUpdateFailedError,
            )
        except RemoteUpdateFailedError as error:
            self._executor.call(self._update_failed, item, error, session)

    def _update_failed(self, item: NoteItem, error: ApplicationError, session: int) -> None:
        if session != self._session:
            return
        current = self.store.find(item.local_id)
        if current is not None and current.completed == item.completed:
            self.store.replace(item.local_id, current.with_completed(not item.completed))
        self._report(error, "update", item.local_id, item.remote_id)

    # -------------------------------------------------------------- snapshot

    def on_snapshot(self, records: list[RemoteNoteRecord]) -> None:
        """Replace the store with ``records``, in the order delivered."""
        known = {item.remote_id: item.local_id for item in self.store if item.remote_id is not None}
        superseded = sum(1 for item in self.store if item.remote_id is None)

        self.store.replace_all(
            NoteItem.from_record(record, known.get(record.remote_id)) for record in records
        )
        self._log_debug("Snapshot applied", count=len(records), superseded=superseded)

    # ------------------------------------------------------------- reporting

    def _report(
        self,
        error: ApplicationError,
        operation: str,
        local_id: str,
        remote_id: str | None = None,
    ) -> None:
        self.last_error = error.message
        self._logger.warning(
            "Sync operation rolled back",
            extra={
                "operation": operation,
                "local_id": local_id,
                "remote_id": remote_id,
                "code": error.code,
                "cause": str(error.__cause__) if error.__cause__ else None,
            },
        )
        self.publisher.sync_failed(error, operation=operation, local_id=local_id, remote_id=remote_id)
