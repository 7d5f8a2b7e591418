"""
Unit Test Fixtures.

Fixtures for unit tests - the remote store is replaced with a controllable
fake so tests decide when and how each remote operation completes.
Unit tests should be fast and isolated, never touching the network.
"""

import asyncio
from collections.abc import AsyncGenerator, Callable, Sequence
from dataclasses import dataclass
from typing import Any

import pytest

from modules.spark.core.concurrency import SerialExecutor
from modules.spark.core.config_schema import FeaturesSchema, ResilienceSchema, SyncSchema
from modules.spark.core.exceptions import ChannelDisconnectedError
from modules.spark.events.publishers import SyncEventPublisher
from modules.spark.events.schemas import EventEnvelope
from modules.spark.schemas.note import RemoteNoteRecord
from modules.spark.services.identity import LocalIdentityProvider
from modules.spark.services.sync import NoteSyncService
from modules.spark.store.local import LocalItemStore


# =============================================================================
# Controllable Remote Store
# =============================================================================


@dataclass
class PendingCall:
    """One remote call waiting for the test to resolve it."""

    args: tuple
    future: asyncio.Future

    def resolve(self, value: Any = None) -> None:
        self.future.set_result(value)

    def fail(self, error: BaseException) -> None:
        self.future.set_exception(error)


@dataclass(eq=False)
class FakeSubscription:
    owner_id: str
    on_snapshot: Callable[[Sequence[RemoteNoteRecord]], None]
    on_error: Callable[[ChannelDisconnectedError], None] | None = None
    active: bool = True

    def remove(self) -> None:
        self.active = False


class ControlledRemoteStore:
    """
    RemoteStore fake whose operations block until the test resolves them.

    Usage:
        service.create_item("Buy milk")
        await remote.settle()
        remote.creates[0].resolve("abc")
        await service.drain()
    """

    def __init__(self) -> None:
        self.creates: list[PendingCall] = []
        self.deletes: list[PendingCall] = []
        self.updates: list[PendingCall] = []
        self.subscriptions: list[FakeSubscription] = []
        self.initial_snapshot: list[RemoteNoteRecord] = []

    async def _wait(self, calls: list[PendingCall], args: tuple) -> Any:
        call = PendingCall(args, asyncio.get_running_loop().create_future())
        calls.append(call)
        return await call.future

    async def create(self, owner_id: str, content: str, is_task: bool, categories: list[str]) -> str:
        return await self._wait(self.creates, (owner_id, content, is_task, categories))

    async def delete(self, remote_id: str) -> None:
        await self._wait(self.deletes, (remote_id,))

    async def set_completed(self, remote_id: str, completed: bool) -> None:
        await self._wait(self.updates, (remote_id, completed))

    def subscribe(self, owner_id, on_snapshot, on_error=None) -> FakeSubscription:
        subscription = FakeSubscription(owner_id, on_snapshot, on_error)
        self.subscriptions.append(subscription)
        on_snapshot(list(self.initial_snapshot))
        return subscription

    def push(self, records: list[RemoteNoteRecord], owner_id: str | None = None) -> None:
        """Deliver a snapshot to every active subscription (optionally one owner's)."""
        for subscription in list(self.subscriptions):
            if subscription.active and (owner_id is None or subscription.owner_id == owner_id):
                subscription.on_snapshot(list(records))

    def disconnect(self) -> None:
        for subscription in list(self.subscriptions):
            if subscription.active and subscription.on_error is not None:
                subscription.on_error(ChannelDisconnectedError())

    @property
    def active_subscriptions(self) -> list[FakeSubscription]:
        return [s for s in self.subscriptions if s.active]

    async def settle(self, rounds: int = 20) -> None:
        """Let spawned tasks run until they block on their pending call."""
        for _ in range(rounds):
            await asyncio.sleep(0)


# =============================================================================
# Settings Fixtures
# =============================================================================


@pytest.fixture
def sync_settings() -> SyncSchema:
    """Sync settings with a single attempt and no backoff."""
    return SyncSchema(
        resilience=ResilienceSchema(
            retry_attempts=1,
            retry_wait_min_seconds=0,
            retry_wait_max_seconds=0,
            operation_timeout_seconds=5,
        ),
    )


@pytest.fixture
def features() -> FeaturesSchema:
    return FeaturesSchema()


# =============================================================================
# Collaborator Fixtures
# =============================================================================


@pytest.fixture
def remote() -> ControlledRemoteStore:
    return ControlledRemoteStore()


@pytest.fixture
def identity() -> LocalIdentityProvider:
    return LocalIdentityProvider("user-1")


@pytest.fixture
def store() -> LocalItemStore:
    return LocalItemStore()


@pytest.fixture
def publisher() -> SyncEventPublisher:
    return SyncEventPublisher(enabled=True)


@pytest.fixture
def published(publisher: SyncEventPublisher) -> list[EventEnvelope]:
    """Events received by a listener registered on the publisher fixture."""
    events: list[EventEnvelope] = []
    publisher.subscribe(events.append)
    return events


# =============================================================================
# Service Fixtures
# =============================================================================


@pytest.fixture
def sync_service(
    remote: ControlledRemoteStore,
    identity: LocalIdentityProvider,
    store: LocalItemStore,
    publisher: SyncEventPublisher,
    sync_settings: SyncSchema,
    features: FeaturesSchema,
) -> NoteSyncService:
    """NoteSyncService wired to the fakes. Not started."""
    return NoteSyncService(
        remote,
        identity,
        store=store,
        publisher=publisher,
        executor=SerialExecutor(),
        settings=sync_settings,
        features=features,
    )


@pytest.fixture
async def started_service(sync_service: NoteSyncService) -> AsyncGenerator[NoteSyncService, None]:
    """Started NoteSyncService; closed (and drained) after the test."""
    sync_service.start()
    yield sync_service
    await sync_service.remote.settle()
    for calls in (sync_service.remote.creates, sync_service.remote.deletes, sync_service.remote.updates):
        for call in calls:
            if not call.future.done():
                call.future.cancel()
    await sync_service.close()
