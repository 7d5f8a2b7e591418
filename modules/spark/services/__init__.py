# Services package
from modules.spark.services.identity import IdentityProvider, LocalIdentityProvider
from modules.spark.services.sync import NoteSyncService

__all__ = [
    "IdentityProvider",
    "LocalIdentityProvider",
    "NoteSyncService",
]
