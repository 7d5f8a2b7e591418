"""
Local Item Store.

Ordered, observable collection of NoteItems currently shown to the user.

The store is owned by NoteSyncService: only the service mutates it, always
from the owner context (see core/concurrency.py). The UI reads `items` and
subscribes to change notifications.

Invariants enforced on every mutation:
    - at most one item per local_id
    - at most one item per non-null remote_id
Violations raise ConflictError and leave the store unchanged.
"""

from collections.abc import Callable, Iterable, Iterator

from modules.spark.core.exceptions import ConflictError, NotFoundError
from modules.spark.core.logging import get_logger
from modules.spark.schemas.note import NoteItem

logger = get_logger(__name__)

StoreObserver = Callable[["LocalItemStore"], None]


class LocalItemStore:
    """Newest-first list of note items with change notification."""

    def __init__(self, items: Iterable[NoteItem] = ()) -> None:
        initial = list(items)
        self._check_unique(initial)
        self._items: list[NoteItem] = initial
        self._observers: list[StoreObserver] = []

    # ------------------------------------------------------------------ reads

    @property
    def items(self) -> tuple[NoteItem, ...]:
        """Current contents, in display order."""
        return tuple(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[NoteItem]:
        return iter(tuple(self._items))

    def find(self, local_id: str) -> NoteItem | None:
        for item in self._items:
            if item.local_id == local_id:
                return item
        return None

    def find_by_remote_id(self, remote_id: str) -> NoteItem | None:
        for item in self._items:
            if item.remote_id == remote_id:
                return item
        return None

    def index_of(self, local_id: str) -> int | None:
        for index, item in enumerate(self._items):
            if item.local_id == local_id:
                return index
        return None

    # -------------------------------------------------------------- mutations

    def insert_at_head(self, item: NoteItem) -> None:
        """Insert ``item`` at position 0."""
        self.insert(0, item)

    def insert(self, index: int, item: NoteItem) -> None:
        """Insert ``item`` at ``index``, clamped to the current bounds.

        Raises:
            ConflictError: If the local_id or remote_id is already present
        """
        if self.find(item.local_id) is not None:
            raise ConflictError(f"Note {item.local_id} is already in the store")
        if item.remote_id is not None and self.find_by_remote_id(item.remote_id) is not None:
            raise ConflictError(f"Remote note {item.remote_id} is already in the store")

        position = max(0, min(index, len(self._items)))
        self._items.insert(position, item)
        self._notify()

    def remove(self, local_id: str) -> NoteItem | None:
        """Remove and return the item, or return None if it is absent."""
        index = self.index_of(local_id)
        if index is None:
            return None
        item = self._items.pop(index)
        self._notify()
        return item

    def replace(self, local_id: str, item: NoteItem) -> None:
        """Swap the entry for ``local_id`` with ``item`` in place.

        Raises:
            NotFoundError: If no entry has ``local_id``
            ConflictError: If ``item`` changes the local id or duplicates a remote id
        """
        index = self.index_of(local_id)
        if index is None:
            raise NotFoundError(f"Note {local_id} is not in the store")
        if item.local_id != local_id:
            raise ConflictError("Replacement must keep the local id")
        if item.remote_id is not None:
            holder = self.find_by_remote_id(item.remote_id)
            if holder is not None and holder.local_id != local_id:
                raise ConflictError(f"Remote note {item.remote_id} is already in the store")

        self._items[index] = item
        self._notify()

    def replace_all(self, items: Iterable[NoteItem]) -> None:
        """Atomically install ``items`` as the full ordered contents.

        Raises:
            ConflictError: If ``items`` contains duplicate local or remote ids
        """
        new_items = list(items)
        self._check_unique(new_items)
        self._items = new_items
        self._notify()

    def clear(self) -> None:
        self.replace_all([])

    # -------------------------------------------------------------- observers

    def subscribe(self, observer: StoreObserver) -> Callable[[], None]:
        """Register a change observer. Returns a callable that removes it."""
        self._observers.append(observer)

        def _unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return _unsubscribe

    def _notify(self) -> None:
        for observer in list(self._observers):
            try:
                observer(self)
            except Exception as exc:
                logger.error(
                    "Store observer failed",
                    extra={"observer": getattr(observer, "__name__", repr(observer)), "error": str(exc)},
                )

    @staticmethod
    def _check_unique(items: list[NoteItem]) -> None:
        local_ids = [item.local_id for item in items]
        if len(set(local_ids)) != len(local_ids):
            raise ConflictError("Duplicate local ids")
        remote_ids = [item.remote_id for item in items if item.remote_id is not None]
        if len(set(remote_ids)) != len(remote_ids):
            raise ConflictError("Duplicate remote ids")
