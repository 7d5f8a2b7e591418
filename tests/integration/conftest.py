"""
Integration Test Fixtures.

Fixtures for integration tests - real collaborators wired together: the
in-memory remote store, the channel, the executor and the sync service.
"""

from collections.abc import AsyncGenerator

import pytest

from modules.spark.core.config_schema import FeaturesSchema, ResilienceSchema, SyncSchema
from modules.spark.events.publishers import SyncEventPublisher
from modules.spark.remote.memory import InMemoryRemoteStore
from modules.spark.services.identity import LocalIdentityProvider
from modules.spark.services.sync import NoteSyncService


@pytest.fixture
def memory_remote() -> InMemoryRemoteStore:
    return InMemoryRemoteStore()


@pytest.fixture
def identity() -> LocalIdentityProvider:
    return LocalIdentityProvider()


@pytest.fixture
async def live_service(
    memory_remote: InMemoryRemoteStore,
    identity: LocalIdentityProvider,
) -> AsyncGenerator[NoteSyncService, None]:
    """
    Started NoteSyncService over the in-memory remote store.

    Usage:
        async def test_capture(live_service, identity):
            identity.sign_in("user-1")
            live_service.create_item("Buy milk")
            await live_service.drain()
    """
    service = NoteSyncService(
        memory_remote,
        identity,
        publisher=SyncEventPublisher(enabled=True),
        settings=SyncSchema(
            resilience=ResilienceSchema(retry_attempts=1, retry_wait_min_seconds=0, retry_wait_max_seconds=0),
        ),
        features=FeaturesSchema(),
    )
    service.start()
    yield service
    await service.close()
