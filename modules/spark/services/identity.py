"""
Identity Provider.

Supplies the current owner id and notifies listeners when the
authentication state changes. NoteSyncService only keeps a snapshot
subscription open while an owner is signed in.

LocalIdentityProvider is the in-process implementation used by the CLI and
tests. Vendor sign-in flows plug in by implementing IdentityProvider.
"""

from collections.abc import Callable
from typing import Protocol, runtime_checkable

from modules.spark.core.logging import get_logger
from modules.spark.core.utils import new_id

logger = get_logger(__name__)

AuthListener = Callable[[str | None], None]


@runtime_checkable
class IdentityProvider(Protocol):
    """Source of the authenticated owner id."""

    @property
    def current_owner_id(self) -> str | None:
        ...

    def add_listener(self, listener: AuthListener) -> Callable[[], None]:
        """Register for auth changes. Returns a callable that removes it."""
        ...


class LocalIdentityProvider:
    """In-process identity with anonymous and explicit sign-in."""

    def __init__(self, owner_id: str | None = None) -> None:
        self._owner_id = owner_id
        self._listeners: list[AuthListener] = []

    @property
    def current_owner_id(self) -> str | None:
        return self._owner_id

    @property
    def is_authenticated(self) -> bool:
        return self._owner_id is not None

    def add_listener(self, listener: AuthListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def sign_in(self, owner_id: str) -> None:
        if owner_id == self._owner_id:
            return
        self._owner_id = owner_id
        logger.info("Signed in", extra={"owner_id": owner_id})
        self._notify()

    def sign_in_anonymously(self) -> str:
        """Sign in with a freshly generated owner id and return it."""
        owner_id = f"anon-{new_id()}"
        self.sign_in(owner_id)
        return owner_id

    def sign_out(self) -> None:
        if self._owner_id is None:
            return
        logger.info("Signed out", extra={"owner_id": self._owner_id})
        self._owner_id = None
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._owner_id)
