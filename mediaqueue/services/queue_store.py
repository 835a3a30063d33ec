# mediaqueue/services/queue_store.py
from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Callable, Dict, Iterator, List, Optional

from mediaqueue.core.errors import (
    DuplicateItemError,
    InvalidTransitionError,
    ItemNotFoundError,
)
from mediaqueue.domain.uploads import (
    ALLOWED_TRANSITIONS,
    QueueStats,
    UploadItem,
    UploadStatus,
)
from mediaqueue.services.previews import PreviewManager

logger = logging.getLogger(__name__)

# Velden die via update() gemuteerd mogen worden
_UPDATABLE = {"status", "progress", "error", "error_code", "metadata", "result"}

RemoveListener = Callable[[UploadItem], None]


class QueueStore:
    """
    Ordered, uniquely keyed collection of upload items. Single source of
    truth for the queue; all removals go through `_discard`.
    """

    def __init__(self, previews: Optional[PreviewManager] = None):
        self._items: "OrderedDict[str, UploadItem]" = OrderedDict()
        self._previews = previews
        self._remove_listeners: List[RemoveListener] = []

    # ---------- read ----------

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[UploadItem]:
        return iter(list(self._items.values()))

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def get(self, item_id: str) -> UploadItem:
        try:
            return self._items[item_id]
        except KeyError:
            raise ItemNotFoundError(item_id) from None

    def find(self, item_id: str) -> Optional[UploadItem]:
        return self._items.get(item_id)

    def items(self) -> List[UploadItem]:
        return list(self._items.values())

    def by_status(self, status: UploadStatus) -> List[UploadItem]:
        return [i for i in self._items.values() if i.status == status]

    def stats(self) -> QueueStats:
        counts: Dict[UploadStatus, int] = {s: 0 for s in UploadStatus}
        for item in self._items.values():
            counts[item.status] += 1
        return QueueStats(
            pending=counts[UploadStatus.PENDING],
            uploading=counts[UploadStatus.UPLOADING],
            completed=counts[UploadStatus.COMPLETED],
            errors=counts[UploadStatus.ERROR],
            total=len(self._items),
        )

    # ---------- write ----------

    def add(self, item: UploadItem) -> UploadItem:
        if item.id in self._items:
            raise DuplicateItemError(f"Upload item already queued: {item.id}")
        self._items[item.id] = item
        return item

    def update(self, item_id: str, **changes) -> UploadItem:
        """
        Partial update. Re-applying the same values is a no-op; status
        changes must follow ALLOWED_TRANSITIONS.
        """
        item = self.get(item_id)
        unknown = set(changes) - _UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)}")

        if "status" in changes:
            new_status = UploadStatus(changes["status"])
            if new_status != item.status and new_status not in ALLOWED_TRANSITIONS[item.status]:
                raise InvalidTransitionError(
                    f"{item.status.value} -> {new_status.value} not allowed for {item_id}",
                    {"item_id": item_id},
                )
            changes["status"] = new_status

        if "progress" in changes:
            changes["progress"] = max(0, min(100, int(changes["progress"])))

        for key, value in changes.items():
            setattr(item, key, value)
        return item

    def on_remove(self, listener: RemoveListener) -> None:
        self._remove_listeners.append(listener)

    def remove(self, item_id: str) -> UploadItem:
        if item_id not in self._items:
            raise ItemNotFoundError(item_id)
        return self._discard(item_id)

    def remove_where(self, predicate: Callable[[UploadItem], bool]) -> List[UploadItem]:
        doomed = [i.id for i in self._items.values() if predicate(i)]
        return [self._discard(item_id) for item_id in doomed]

    def clear_completed(self) -> List[UploadItem]:
        return self.remove_where(lambda i: i.status == UploadStatus.COMPLETED)

    def clear_all(self) -> List[UploadItem]:
        return self.remove_where(lambda i: True)

    def _discard(self, item_id: str) -> UploadItem:
        item = self._items.pop(item_id)
        if item.preview is not None and self._previews is not None:
            self._previews.release(item.preview)
        for listener in self._remove_listeners:
            try:
                listener(item)
            except Exception:
                logger.exception("Remove listener failed for %s", item_id)
        return item
