"""
Remote store backends.

Usage:
    from modules.spark.remote import create_remote_store

    remote = create_remote_store()            # backend from remote.yaml
    remote = create_remote_store("memory")    # explicit
"""

from modules.spark.remote.base import ListenerRegistration, RemoteStore
from modules.spark.remote.channel import RemoteSyncChannel, SubscriptionHandle
from modules.spark.remote.http import HttpRemoteStore
from modules.spark.remote.memory import InMemoryRemoteStore


def create_remote_store(backend: str | None = None) -> RemoteStore:
    """Build the configured remote store.

    Args:
        backend: 'memory' or 'http'. If None, reads remote.yaml.

    Raises:
        ValueError: For an unknown backend name
    """
    if backend is None:
        from modules.spark.core.config import get_app_config

        backend = get_app_config().remote.backend

    if backend == "memory":
        return InMemoryRemoteStore()
    if backend == "http":
        return HttpRemoteStore()
    raise ValueError(f"Unknown remote store backend: {backend}")


__all__ = [
    "HttpRemoteStore",
    "InMemoryRemoteStore",
    "ListenerRegistration",
    "RemoteStore",
    "RemoteSyncChannel",
    "SubscriptionHandle",
    "create_remote_store",
]
